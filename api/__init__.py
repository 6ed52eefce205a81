"""
HTTP API package for the storefront location engine.
"""

from .locations import router as locations_router, get_location_service

__all__ = ["locations_router", "get_location_service"]
