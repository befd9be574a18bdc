#!/usr/bin/env python3
"""
Bankline Entry Point

Starts the FastAPI server for the online banking platform.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from online_banking.api import run_server
from online_banking.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Bankline...")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)  # Set to True for development
    except KeyboardInterrupt:
        print("\n👋 Shutting down Bankline...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
