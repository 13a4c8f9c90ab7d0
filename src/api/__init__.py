"""
HTTP service for the insurance ledger.

Exposes role, policy and claim operations over FastAPI, with the caller
identity supplied per request by the fronting gateway.
"""

from .app import app, create_app, main

__all__ = ["app", "create_app", "main"]
