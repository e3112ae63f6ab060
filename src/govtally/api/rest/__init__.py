"""
REST API Module

FastAPI routes for treasury scans and vote tallies.
"""

from .app import ScanRequest, create_app, create_router

__all__ = ["create_app", "create_router", "ScanRequest"]
