# outfit_gateway/models/database/__init__.py
"""Database models initialization."""

from .base import Base
from .outfit_rating import AccuracyRating, OutfitRating

# This makes imports cleaner elsewhere in the application
__all__ = [
    'Base',
    'AccuracyRating',
    'OutfitRating'
]
