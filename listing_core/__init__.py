"""
Data-access core for a room rental marketplace.

Maps listing drafts to the remote schema, queries listings through a
GraphQL data gateway and manages listing images and favorites.
"""

from .services.listing_service import ListingService

__version__ = "1.0.0"

__all__ = ["ListingService", "__version__"]
