"""
API Routers
Separate router modules for each domain.
"""

from app.routers import build_descriptor

__all__ = ["build_descriptor"]
