"""
Batch request aggregation: merged provider calls, id-correlated results.
"""

from resilience_layer.batching.aggregator import BatchRequestAggregator
from resilience_layer.batching.dedupe import dedupe_entities, normalize_entity_key
from resilience_layer.batching.exceptions import JSONParseError
from resilience_layer.batching.kinds import (
    BatchKind,
    EventFilteringKind,
    SpeakerExtractionKind,
    heuristic_event_score,
)
from resilience_layer.batching.models import (
    BatchResult,
    BatchStats,
    EventFilterResult,
    EventItem,
    SearchResultItem,
    Speaker,
    SpeakerExtractionResult,
)
from resilience_layer.batching.parsing import RepairJSONParse, StrictJSONParse, parse_llm_json

__all__ = [
    "BatchRequestAggregator",
    "BatchKind",
    "SpeakerExtractionKind",
    "EventFilteringKind",
    "heuristic_event_score",
    "BatchResult",
    "BatchStats",
    "EventItem",
    "Speaker",
    "SpeakerExtractionResult",
    "SearchResultItem",
    "EventFilterResult",
    "StrictJSONParse",
    "RepairJSONParse",
    "parse_llm_json",
    "JSONParseError",
    "dedupe_entities",
    "normalize_entity_key",
]
