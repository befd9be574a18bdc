"""
Bankline Online Banking Platform

Customer banking (deposits, withdrawals, transfers, cards, loans, crypto, KYC)
with an administrative back office, served over a FastAPI REST API.
"""

__version__ = "1.0.0"
