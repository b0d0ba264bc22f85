"""Conversation transcript schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Speaker(str, Enum):
    AGENT = "agent"
    USER = "user"


class TranscriptTurn(BaseModel):
    """A single message in a user's conversation."""

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[dict[str, Any]] = None
