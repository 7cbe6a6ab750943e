"""
Batch kinds.

A batch kind knows how to merge many logical requests into one prompt and
how to split the provider's single response back into per-item results,
always by explicit id and never by position.
"""

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional, Protocol, TypeVar

import structlog
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError as PydanticValidationError

from resilience_layer.batching.dedupe import dedupe_entities
from resilience_layer.batching.models import (
    EventFilterResult,
    EventItem,
    SearchResultItem,
    Speaker,
    SpeakerExtractionResult,
)

logger = structlog.get_logger(__name__)

I = TypeVar("I")
R = TypeVar("R")

PROMPTS_DIR = Path(__file__).parent / "prompts"

_prompt_env = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    trim_blocks=True,
    lstrip_blocks=True,
    autoescape=False,  # We're generating prompts, not HTML
)


class BatchKind(Protocol[I, R]):
    """Contract between the aggregator and one merge-able call kind."""

    name: str
    operation: str
    response_schema: dict[str, Any]

    def item_id(self, item: I) -> str: ...

    def precomputed_result(self, item: I) -> Optional[R]:
        """Result for items that need no provider call, else None."""
        ...

    def build_prompt(self, items: Sequence[I]) -> str: ...

    def demultiplex(self, parsed: Any, items: Sequence[I]) -> dict[str, R]:
        """Map item id to result for every id present in the parsed response."""
        ...

    def default_result(self, item: I) -> R: ...

    def heuristic_result(self, item: I) -> R: ...

    def failed_result(self, item: I, error: BaseException) -> R: ...


def _id_of(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    return str(value)


# === Speaker extraction ===

_SPEAKER_ENTRY_SCHEMA = {
    "type": "object",
    "required": ["eventId"],
    "properties": {
        "eventId": {"type": ["string", "integer"]},
        "speakers": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "org": {"type": ["string", "null"]},
                    "title": {"type": ["string", "null"]},
                    "session_title": {"type": ["string", "null"]},
                    "confidence": {"type": ["number", "null"]},
                },
            },
        },
    },
}

SPEAKER_RESPONSE_SCHEMA = {
    "anyOf": [
        {"type": "array", "items": _SPEAKER_ENTRY_SCHEMA},
        {
            "type": "object",
            "required": ["results"],
            "properties": {"results": {"type": "array", "items": _SPEAKER_ENTRY_SCHEMA}},
        },
    ]
}


class SpeakerExtractionKind:
    """Events in, de-duplicated speakers per event out."""

    name = "speaker_extraction"
    operation = "batch_speaker_extraction"
    response_schema = SPEAKER_RESPONSE_SCHEMA

    def __init__(self, description_limit: int = 500):
        self.description_limit = description_limit
        self._template = _prompt_env.get_template("speaker_extraction.j2")

    def item_id(self, item: EventItem) -> str:
        return item.id

    def precomputed_result(self, item: EventItem) -> Optional[SpeakerExtractionResult]:
        if not item.speakers:
            return None
        return SpeakerExtractionResult(
            event_id=item.id,
            speakers=dedupe_entities(item.speakers),
            success=True,
            source="precomputed",
        )

    def build_prompt(self, items: Sequence[EventItem]) -> str:
        events = [
            {
                "id": item.id,
                "title": item.title,
                "description": (item.description or "")[: self.description_limit],
                "date": item.starts_at,
                "location": item.location or item.city,
            }
            for item in items
        ]
        return self._template.render(events_json=json.dumps(events, indent=2, ensure_ascii=False))

    def demultiplex(self, parsed: Any, items: Sequence[EventItem]) -> dict[str, SpeakerExtractionResult]:
        entries = parsed if isinstance(parsed, list) else parsed.get("results", [])
        wanted = {item.id for item in items}
        results: dict[str, SpeakerExtractionResult] = {}

        for entry in entries:
            event_id = _id_of(entry.get("eventId"))
            if event_id not in wanted or event_id in results:
                continue

            speakers: list[Speaker] = []
            for raw in entry.get("speakers") or []:
                try:
                    speakers.append(Speaker.model_validate(raw))
                except PydanticValidationError:
                    logger.debug("Skipping malformed speaker", event_id=event_id)

            results[event_id] = SpeakerExtractionResult(
                event_id=event_id,
                speakers=dedupe_entities(speakers),
                success=True,
                source="provider",
            )
        return results

    def default_result(self, item: EventItem) -> SpeakerExtractionResult:
        return SpeakerExtractionResult(event_id=item.id, speakers=[], success=True, source="default")

    def heuristic_result(self, item: EventItem) -> SpeakerExtractionResult:
        return SpeakerExtractionResult(
            event_id=item.id,
            speakers=[],
            success=False,
            source="heuristic",
            error="Failed to parse batch response",
        )

    def failed_result(self, item: EventItem, error: BaseException) -> SpeakerExtractionResult:
        return SpeakerExtractionResult(
            event_id=item.id,
            speakers=[],
            success=False,
            source="failed",
            error=type(error).__name__,
        )


# === Event filtering ===

EVENT_FILTER_RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["decisions"],
    "properties": {
        "decisions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "isEvent"],
                "properties": {
                    "id": {"type": ["string", "integer"]},
                    "isEvent": {"type": "boolean"},
                    "score": {"type": ["number", "null"]},
                    "reason": {"type": ["string", "null"]},
                },
            },
        }
    },
}

EVENT_KEYWORDS = (
    "conference", "summit", "workshop", "seminar", "forum", "symposium", "congress",
    "event", "meeting", "training", "certification", "webinar",
    "konferenz", "kongress", "tagung", "veranstaltung", "fortbildung",
)
TOPIC_KEYWORDS = (
    "legal", "compliance", "investigation", "e-discovery", "ediscovery", "regulatory",
    "governance", "risk management", "audit", "data protection", "gdpr", "dsgvo",
    "privacy", "cybersecurity", "regtech", "esg", "datenschutz",
)
URL_HINTS = ("/event", "/veranstaltung", "/termine", "/conference", "/seminar", "/workshop", "/summit")
EXCLUDE_KEYWORDS = ("job", "career", "hiring", "news", "press release", "blog")
SPAM_KEYWORDS = ("free", "download", "pdf", "ebook", "guide", "tips")

# Raw keyword score at which the heuristic reports full confidence
_HEURISTIC_SCALE = 50.0


def heuristic_event_score(item: SearchResultItem) -> tuple[float, bool]:
    """
    Keyword-match scoring used when the provider response is unusable.

    Returns (score in [0, 1], is_event). An item is an event when it matches
    at least one event keyword or URL hint and no exclusion keyword.
    """
    content = f"{item.title} {item.snippet}".lower()
    url = (item.link or "").lower()

    event_hits = sum(1 for keyword in EVENT_KEYWORDS if keyword in content)
    url_hits = sum(1 for hint in URL_HINTS if hint in url)
    raw = 10 * event_hits
    raw += 8 * sum(1 for keyword in TOPIC_KEYWORDS if keyword in content)
    raw += 5 * url_hits
    raw -= 5 * sum(1 for keyword in SPAM_KEYWORDS if keyword in content)

    excluded = any(keyword in content for keyword in EXCLUDE_KEYWORDS)
    score = min(1.0, max(0.0, raw / _HEURISTIC_SCALE))
    return score, bool(event_hits or url_hits) and not excluded


class EventFilteringKind:
    """Search results in, is-event decision with score out."""

    name = "event_filtering"
    operation = "batch_event_filtering"
    response_schema = EVENT_FILTER_RESPONSE_SCHEMA

    def __init__(self, country: Optional[str] = None, snippet_limit: int = 200):
        self.country = country
        self.snippet_limit = snippet_limit
        self._template = _prompt_env.get_template("event_filtering.j2")

    def item_id(self, item: SearchResultItem) -> str:
        return item.id

    def precomputed_result(self, item: SearchResultItem) -> Optional[EventFilterResult]:
        return None

    def build_prompt(self, items: Sequence[SearchResultItem]) -> str:
        results = [
            {
                "id": item.id,
                "title": item.title,
                "link": item.link,
                "snippet": (item.snippet or "")[: self.snippet_limit],
            }
            for item in items
        ]
        return self._template.render(
            country=self.country,
            results_json=json.dumps(results, indent=2, ensure_ascii=False),
        )

    def demultiplex(self, parsed: Any, items: Sequence[SearchResultItem]) -> dict[str, EventFilterResult]:
        wanted = {item.id for item in items}
        results: dict[str, EventFilterResult] = {}

        for decision in parsed.get("decisions", []):
            item_id = _id_of(decision.get("id"))
            if item_id not in wanted or item_id in results:
                continue

            is_event = bool(decision["isEvent"])
            score = decision.get("score")
            if score is None:
                score = 1.0 if is_event else 0.0

            results[item_id] = EventFilterResult(
                item_id=item_id,
                is_event=is_event,
                score=min(1.0, max(0.0, float(score))),
                reason=decision.get("reason") or "",
                success=True,
                source="provider",
            )
        return results

    def default_result(self, item: SearchResultItem) -> EventFilterResult:
        return EventFilterResult(
            item_id=item.id,
            is_event=False,
            score=0.0,
            reason="No decision returned",
            success=True,
            source="default",
        )

    def heuristic_result(self, item: SearchResultItem) -> EventFilterResult:
        score, is_event = heuristic_event_score(item)
        return EventFilterResult(
            item_id=item.id,
            is_event=is_event,
            score=score,
            reason="heuristic fallback",
            success=False,
            source="heuristic",
            error="Failed to parse batch response",
        )

    def failed_result(self, item: SearchResultItem, error: BaseException) -> EventFilterResult:
        return EventFilterResult(
            item_id=item.id,
            is_event=False,
            score=0.0,
            success=False,
            source="failed",
            error=type(error).__name__,
        )
