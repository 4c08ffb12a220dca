"""Few-shot context built from user feedback on past ratings.

Fetches the most recent ratings users marked as accurate and inaccurate
and renders them as one instructional text block. Failure to query the
history is never fatal: it is logged and treated as "no examples".
"""

import json
from typing import List, Optional

from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.feedback import FeedbackLabel, FewShotExample, RatingHistory

logger = get_logger(__name__)

HEADER = "=== LEARNING FROM USER FEEDBACK ==="
GOOD_HEADER = "GOOD EXAMPLES (User marked as VERY ACCURATE):"
BAD_HEADER = "WHAT NOT TO DO (User marked as INACCURATE):"
FOOTER = "=== NOW ANALYZE THE NEW IMAGE ==="


def format_examples(good: List[FewShotExample], bad: List[FewShotExample]) -> str:
    """Render examples into GOOD/BAD sections. Empty input renders as ''."""
    if not good and not bad:
        return ""

    sections = [HEADER]

    if good:
        sections.append(GOOD_HEADER)
        for idx, example in enumerate(good, start=1):
            sections.append(f"Example {idx}:\n{_dump(example)}")

    if bad:
        sections.append(BAD_HEADER)
        for idx, example in enumerate(bad, start=1):
            entry = f"Bad Example {idx}:\n{_dump(example)}"
            if example.human_feedback:
                entry += f'\nUser feedback: "{example.human_feedback}"'
            sections.append(entry)

    sections.append(FOOTER)
    return "\n\n".join(sections)


def _dump(example: FewShotExample) -> str:
    return json.dumps(example.response, indent=2, ensure_ascii=False, default=str)


class FeedbackExampleFetcher:
    """Query labeled history and format it as few-shot context."""

    def __init__(self, good_limit: int = 2, bad_limit: int = 1):
        self.good_limit = good_limit
        self.bad_limit = bad_limit

    async def fetch(self, history: Optional[RatingHistory]) -> str:
        """Formatted few-shot text, or '' when history is absent, empty or failing."""
        if history is None:
            return ""

        try:
            # Sequential: a shared database session does not allow concurrent queries
            good = await history.find_recent(FeedbackLabel.ACCURATE, self.good_limit)
            bad = await history.find_recent(FeedbackLabel.INACCURATE, self.bad_limit)
        except Exception as e:
            logger.warning(
                "Could not fetch few-shot examples",
                error_type=e.__class__.__name__,
                error_message=str(e)
            )
            return ""

        good = list(good)[:self.good_limit]
        bad = list(bad)[:self.bad_limit]
        logger.debug("Fetched few-shot examples", good=len(good), bad=len(bad))
        return format_examples(good, bad)
