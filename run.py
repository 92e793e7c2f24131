#!/usr/bin/env python3
"""
Brokerage Ledger Entry Point

Starts the FastAPI server with the brokerage ledger core.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from brokerage_core.api import run_server
from brokerage_core.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Brokerage Ledger...")
    print("All balances use Decimal precision")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Brokerage Ledger...")
