#!/usr/bin/env python3
"""
Run script for the insurance ledger service.

Usage:
    python run_ledger_service.py

Make sure to:
1. Copy .env.example to .env and set LEDGER_OWNER to the deploying identity
2. Put the service behind a gateway that sets the X-Caller-Identity header
"""

import logging
import os
import sys

# Quiet HTTP client libraries before anything imports them
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the ledger service."""
    import uvicorn
    from src.utils.config import settings

    print("=" * 60)
    print("Insurance Ledger Service")
    print("=" * 60)
    print(f"Server: {settings.base_url}")
    print(f"Owner: {settings.ledger_owner}")
    print(f"Strict lookup: {settings.ledger_strict_lookup}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: {settings.base_url}/health")
    print(f"  - Policies: POST {settings.base_url}/policies")
    print(f"  - Claims: POST {settings.base_url}/claims")
    print(f"  - Notifications: {settings.base_url}/events")
    print()

    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
