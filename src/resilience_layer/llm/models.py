"""
Provider request/response models.

These models are internal to the LLM layer and abstract the provider's wire
format away from the batch aggregator.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class LLMGenerationRequest(BaseModel):
    """Standardized generation request sent to any provider client."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., description="Complete prompt text")
    model: Optional[str] = Field(default=None, description="Model override; client default when unset")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=2048, ge=1, le=32768, description="Maximum tokens to generate")
    response_mime_type: str = Field(default="application/json", description="Requested output MIME type")
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Nucleus sampling parameter")
    stop_sequences: Optional[list[str]] = Field(default=None, description="Stop sequences for generation")


class LLMGenerationResponse(BaseModel):
    """
    Raw generated text plus usage metadata.

    Parsing of the content happens in the batching layer.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Generated text (typically JSON)")
    model_version: str = Field(..., description="Model that produced the content")
    finish_reason: str = Field(..., description="Why generation stopped: 'STOP', 'MAX_TOKENS', ...")
    usage_tokens: Optional[int] = Field(default=None, description="Total tokens (prompt + completion)")
    prompt_tokens: Optional[int] = Field(default=None, description="Tokens in prompt")
    completion_tokens: Optional[int] = Field(default=None, description="Tokens in completion")
    latency_ms: int = Field(..., ge=0, description="Generation latency in milliseconds")
    raw_metadata: dict[str, Any] = Field(default_factory=dict, description="Provider-specific metadata")
