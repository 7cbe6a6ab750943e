"""
Batch item and result models.
"""

from dataclasses import dataclass, field
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

R = TypeVar("R")

ResultSource = Literal["provider", "default", "heuristic", "failed", "precomputed"]


class Speaker(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    org: str = ""
    title: str = ""
    session_title: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("org", "title", "session_title", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return 0.0
        return min(1.0, max(0.0, float(value)))


class EventItem(BaseModel):
    """Event submitted for speaker extraction. Events that already carry speakers are not sent."""

    id: str
    title: str
    description: str = ""
    starts_at: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    speakers: list[Speaker] = Field(default_factory=list)


class SpeakerExtractionResult(BaseModel):
    event_id: str
    speakers: list[Speaker] = Field(default_factory=list)
    success: bool
    source: ResultSource
    error: Optional[str] = None


class SearchResultItem(BaseModel):
    """Search hit submitted for event filtering."""

    id: str
    title: str
    link: str = ""
    snippet: str = ""


class EventFilterResult(BaseModel):
    item_id: str
    is_event: bool
    score: float = Field(ge=0.0, le=1.0)
    reason: str = ""
    success: bool
    source: ResultSource
    error: Optional[str] = None


@dataclass
class BatchStats:
    total_processed: int = 0
    successful_batches: int = 0
    failed_batches: int = 0
    total_tokens_used: int = 0
    processing_time_ms: float = 0.0


@dataclass
class BatchResult(Generic[R]):
    """Per-item results in input order, plus run statistics."""

    results: list[R]
    stats: BatchStats = field(default_factory=BatchStats)
