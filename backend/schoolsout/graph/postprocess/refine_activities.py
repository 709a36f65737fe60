"""
Recover Activity records from model text.

Gemini's formatting drifts between clean JSON, JSON inside Markdown fences and
JSON wrapped in prose, so extraction is tiered:

1. strict parse of the whole text
2. interior of a ```json fence
3. interior of a generic ``` fence
4. only when there is no fence at all: the whole text again, then the span
   from the first "[" to the last "]"

Every tier validates against the Activity schema. If none succeeds a
StructuredParseFailure carrying the raw text is raised; a partial or
invented list is never returned.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from schoolsout.integrations.exceptions import StructuredParseFailure
from schoolsout.models.entities import Activity, ActivityList

logger = logging.getLogger(__name__)

JSON_FENCE = "```json"
FENCE = "```"

# Stage 1 sometimes opens with a part that only announces the search.
SEARCH_INTRO_PHRASES = (
    "okay, i will search",
    "ok, i will search",
    "i will search",
    "i'll search",
    "let me search",
    "i am going to search",
    "i'm going to search",
)

TIER_STRICT = "strict"
TIER_JSON_FENCE = "json_fence"
TIER_GENERIC_FENCE = "generic_fence"
TIER_WHOLE_TEXT = "whole_text"


def is_search_intro(segment: str) -> bool:
    lowered = segment.lower()
    return any(phrase in lowered for phrase in SEARCH_INTRO_PHRASES)


def assemble_search_text(segments: Sequence[str]) -> str:
    """Join stage-1 parts, skipping the first one if it is only an intro."""
    parts = list(segments)
    if len(parts) > 1 and is_search_intro(parts[0]):
        logger.debug("Skipping stage 1 intro part: %r", parts[0])
        parts = parts[1:]
    return "".join(parts)


def _parse(text: str) -> Optional[List[Activity]]:
    try:
        return ActivityList.validate_json(text)
    except ValidationError:
        return None


def _fenced(text: str, marker: str) -> Optional[str]:
    start = text.lower().find(marker)
    if start == -1:
        return None
    start += len(marker)
    end = text.find(FENCE, start)
    if end == -1:
        return None
    return text[start:end]


def _bracketed(text: str) -> Optional[str]:
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def extract_activities_with_tier(text: str) -> Tuple[List[Activity], str]:
    activities = _parse(text)
    if activities is not None:
        return activities, TIER_STRICT

    json_block = _fenced(text, JSON_FENCE)
    if json_block is not None:
        activities = _parse(json_block)
        if activities is not None:
            return activities, TIER_JSON_FENCE

    generic_block = _fenced(text, FENCE)
    if generic_block is not None:
        activities = _parse(generic_block)
        if activities is not None:
            return activities, TIER_GENERIC_FENCE

    if json_block is None and generic_block is None:
        activities = _parse(text.strip())
        if activities is None:
            span = _bracketed(text)
            if span is not None:
                activities = _parse(span)
        if activities is not None:
            return activities, TIER_WHOLE_TEXT

    raise StructuredParseFailure("failed to parse activities from response", raw_text=text)


def extract_activities(text: str) -> List[Activity]:
    activities, _ = extract_activities_with_tier(text)
    return activities


def assign_ids(activities: Sequence[Activity]) -> List[Activity]:
    """Make ids unique within the result; blanks and repeats get activity-<n>."""
    seen = set()
    out = []
    for position, activity in enumerate(activities, start=1):
        activity_id = activity.id.strip()
        if not activity_id or activity_id in seen:
            activity_id = f"activity-{position}"
            suffix = 1
            while activity_id in seen:
                suffix += 1
                activity_id = f"activity-{position}-{suffix}"
            activity = activity.model_copy(update={"id": activity_id})
        seen.add(activity_id)
        out.append(activity)
    return out


def refine_activities(text: str) -> Tuple[List[Activity], str]:
    """Stage 2 text -> (Activity list with unique ids, tier that parsed it)."""
    activities, tier = extract_activities_with_tier(text)
    activities = assign_ids(activities)

    logger.info("Refined %d activities (tier=%s)", len(activities), tier)
    return activities, tier
