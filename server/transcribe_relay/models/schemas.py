"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TranscriptionResponse(BaseModel):
    """Successful relay result returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., description="Transcript exactly as returned upstream")
    audio_url: Optional[str] = Field(
        default=None,
        alias="audioUrl",
        description="Public link to the stored artifact, when exposed",
    )


class ErrorResponse(BaseModel):
    """Uniform failure body: a message, or the upstream's structured error."""

    error: Any
