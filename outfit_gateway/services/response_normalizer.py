"""Normalize raw model replies into ``GatewayResponse`` values.

Models wrap JSON in markdown fences or surround it with prose. The
normalizer tries, in order:
1. A strict JSON parse of the whole reply
2. The interior of the first fenced code block
3. The substring from the first ``{`` to the last ``}``

Sentinel phrases (no subject, several subjects) take priority over
parsing: they are a valid judgment that the image is unusable, not a
malformed reply. ``normalize`` never raises.
"""

import json
import re
from typing import Any, Dict, Iterator, Optional, Tuple

from outfit_gateway.core.errors import ErrorKind
from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.messages import GatewayResponse

logger = get_logger(__name__)

NO_SUBJECT_SENTINEL = "no_clothes_detected"
MULTIPLE_SUBJECTS_SENTINEL = "more_than_one_person_detected"
SENTINELS = (NO_SUBJECT_SENTINEL, MULTIPLE_SUBJECTS_SENTINEL)

FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class ResponseNormalizer:
    """Extract a JSON object from a model reply."""

    def normalize(self, raw: Optional[str]) -> GatewayResponse:
        text = raw if isinstance(raw, str) else ""

        sentinel = self.find_sentinel(text)
        if sentinel:
            logger.info("Model reply contains sentinel", sentinel=sentinel)
            return GatewayResponse(
                assistant_text=text.strip(),
                parse_error=ErrorKind.DOMAIN_VALIDATION_FAILURE,
                sentinel=sentinel
            )

        for strategy, candidate in self._candidates(text):
            parsed = self._parse_object(candidate)
            if parsed is not None:
                logger.debug("Parsed model reply", strategy=strategy)
                return GatewayResponse(assistant_text=candidate, parsed=parsed)

        logger.warning("Model reply is not valid JSON", reply_length=len(text))
        return GatewayResponse(
            assistant_text=text.strip(),
            parse_error=ErrorKind.MALFORMED_MODEL_OUTPUT
        )

    @staticmethod
    def find_sentinel(text: str) -> Optional[str]:
        for sentinel in SENTINELS:
            if sentinel in text:
                return sentinel
        return None

    @staticmethod
    def _candidates(text: str) -> Iterator[Tuple[str, str]]:
        yield "strict", text.strip()

        match = FENCE_PATTERN.search(text)
        if match:
            yield "fenced", match.group(1).strip()

        start = text.find("{")
        end = text.rfind("}")
        if start >= 0 and end > start:
            yield "braces", text[start:end + 1].strip()

    @staticmethod
    def _parse_object(candidate: str) -> Optional[Dict[str, Any]]:
        if not candidate:
            return None
        try:
            value = json.loads(candidate)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None
