"""
govtally API layer.

REST (FastAPI) access to the treasury service.
"""

from .rest import create_app, create_router

__all__ = ["create_app", "create_router"]
