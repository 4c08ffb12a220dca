"""Read-only repositories."""

from .outfit_ratings import OutfitRatingRepository

__all__ = ["OutfitRatingRepository"]
