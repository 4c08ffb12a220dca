"""Outfit rating model with user accuracy feedback."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from .base import Base


class AccuracyRating(str, Enum):
    """User verdict on a rating, as stored."""
    VERY_ACCURATE = "VERY_ACCURATE"
    ACCURATE = "ACCURATE"
    SOMEWHAT_ACCURATE = "SOMEWHAT_ACCURATE"
    INACCURATE = "INACCURATE"


class OutfitRating(Base):
    """A rating produced for a user's photo, plus any feedback on it."""
    __tablename__ = 'outfit_ratings'

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(32), nullable=False)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    accuracy_rating: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    user_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    feedback_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    __table_args__ = (
        Index('idx_outfit_rating_feedback', 'accuracy_rating', 'feedback_timestamp'),
    )
