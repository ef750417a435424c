"""
Message types carried on the engine's message bus.

Catalog mutations and lifecycle transitions are announced as event
messages so that collaborators (audit trails, downstream cache layers)
can react without coupling to the engine.
"""

from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


class MessageType(Enum):
    """Types of messages on the message bus."""

    EVENT = auto()  # Something happened
    COMMAND = auto()  # Something should happen


class Message(BaseModel):
    """Carrier for messages on the pub/sub message bus."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    type: MessageType
    topic: str
    payload: Any
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    source: str
    correlation_id: str | None = None

    ttl_seconds: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        """Check if message has exceeded its TTL."""
        if self.ttl_seconds is None:
            return False
        age = (datetime.now(UTC) - self.created_at).total_seconds()
        return age > self.ttl_seconds

    @classmethod
    def event(cls, topic: str, source: str, payload: Any) -> "Message":
        """Create an event message."""
        return cls(type=MessageType.EVENT, topic=topic, payload=payload, source=source)

    @classmethod
    def command(cls, topic: str, source: str, payload: Any) -> "Message":
        """Create a command message."""
        return cls(type=MessageType.COMMAND, topic=topic, payload=payload, source=source)
