"""Few-shot feedback examples and the historical-ratings interface."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from pydantic import BaseModel


class FeedbackLabel(str, Enum):
    """Human verdict on a past rating."""
    ACCURATE = "accurate"
    INACCURATE = "inaccurate"


class FewShotExample(BaseModel):
    """A past model response labeled by a user."""
    response: Dict[str, Any]
    human_feedback: Optional[str] = None
    label: FeedbackLabel
    timestamp: Optional[datetime] = None


@runtime_checkable
class RatingHistory(Protocol):
    """Read-only access to labeled historical ratings."""

    async def find_recent(self, label: FeedbackLabel, limit: int) -> List[FewShotExample]:
        """Most recent examples with ``label``, newest first."""
        ...
