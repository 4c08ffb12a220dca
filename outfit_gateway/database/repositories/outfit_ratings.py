# outfit_gateway/database/repositories/outfit_ratings.py
"""Repository for labeled outfit ratings, used as few-shot history."""

from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from outfit_gateway.models.database.outfit_rating import AccuracyRating, OutfitRating
from outfit_gateway.models.domain.feedback import FeedbackLabel, FewShotExample
from .base import BaseRepository

# Only the strongest positive verdict counts as a good example
LABEL_TO_RATING = {
    FeedbackLabel.ACCURATE: AccuracyRating.VERY_ACCURATE,
    FeedbackLabel.INACCURATE: AccuracyRating.INACCURATE,
}


class OutfitRatingRepository(BaseRepository[OutfitRating]):
    """Read-only ``RatingHistory`` over the ``outfit_ratings`` table."""

    def __init__(self, session: AsyncSession):
        super().__init__(OutfitRating, session)

    async def find_recent(self, label: FeedbackLabel, limit: int) -> List[FewShotExample]:
        """Most recent ratings with ``label``, newest feedback first."""
        rows = await self.find(
            filters={"accuracy_rating": LABEL_TO_RATING[label].value},
            order_by=[("feedback_timestamp", "desc")],
            limit=limit
        )
        return [
            FewShotExample(
                response=row.response or {},
                human_feedback=row.user_feedback,
                label=label,
                timestamp=row.feedback_timestamp
            )
            for row in rows
        ]
