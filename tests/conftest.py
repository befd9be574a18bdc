"""
Shared test setup for the Bankline test suite
"""

import os

# Keep the module-level API system off disk during tests
os.environ.setdefault("BANKLINE_DATABASE_URL", "memory://")
os.environ.setdefault("BANKLINE_EMAIL_BACKEND", "log")

import pytest

from tests.factories import make_system


@pytest.fixture
def system():
    return make_system()
