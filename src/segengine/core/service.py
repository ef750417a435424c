"""
Service base class with metadata, lifecycle and event publishing.

Long-lived engine components are services: they are constructed with
their collaborators injected, brought up with :meth:`Service.load`,
torn down with :meth:`Service.close`, and announce what they do on an
optional message bus.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Self

import structlog
from pydantic import BaseModel, ConfigDict, Field

from segengine.bus.topics import ServiceTopics
from segengine.core.signals import Message

if TYPE_CHECKING:
    from segengine.bus.message_bus import MessageBus

logger = structlog.get_logger()


class ServiceState(Enum):
    """Lifecycle states for a service."""

    CREATED = auto()
    LOADING = auto()
    RUNNING = auto()
    CLOSING = auto()
    CLOSED = auto()
    FAILED = auto()


class ServiceMetadata(BaseModel):
    """Metadata describing a service."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    display_name: str
    description: str
    version: str = "0.1.0"
    tags: frozenset[str] = Field(default_factory=frozenset)
    published_topics: frozenset[str] = Field(default_factory=frozenset)


@dataclass
class ServiceStats:
    """Runtime statistics for a service."""

    started_at: datetime | None = None
    stopped_at: datetime | None = None
    total_messages_sent: int = 0
    total_errors: int = 0
    last_activity_at: datetime | None = None


class Service:
    """
    Base class for engine services.

    Provides:
    - Metadata and lifecycle management (load / close)
    - Async context manager support
    - Message bus integration for event publishing
    - Statistics tracking
    """

    def __init__(
        self,
        metadata: ServiceMetadata,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        self._metadata = metadata
        self._message_bus = message_bus
        self._service_state = ServiceState.CREATED
        self._stats = ServiceStats()
        self._log = logger.bind(service=metadata.name)

    # --- Properties ---

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def metadata(self) -> ServiceMetadata:
        return self._metadata

    @property
    def service_state(self) -> ServiceState:
        return self._service_state

    @property
    def stats(self) -> ServiceStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._service_state == ServiceState.RUNNING

    @property
    def message_bus(self) -> "MessageBus | None":
        return self._message_bus

    # --- Lifecycle management ---

    async def load(self) -> None:
        """Bring the service up."""
        if self._service_state not in (ServiceState.CREATED, ServiceState.CLOSED):
            raise RuntimeError(f"Cannot load service in state {self._service_state}")

        self._service_state = ServiceState.LOADING
        self._log.info("service_loading")

        try:
            await self.on_load()
        except Exception:
            self._service_state = ServiceState.FAILED
            self._stats.total_errors += 1
            self._log.exception("service_load_failed")
            raise

        self._service_state = ServiceState.RUNNING
        self._stats.started_at = datetime.now(UTC)
        self._log.info("service_loaded")
        await self.emit_event(str(ServiceTopics.started(self.name)), {"name": self.name})

    async def close(self) -> None:
        """Shut the service down. A no-op unless running."""
        if self._service_state != ServiceState.RUNNING:
            return

        self._service_state = ServiceState.CLOSING
        self._log.info("service_closing")

        try:
            await self.on_close()
        except Exception:
            self._service_state = ServiceState.FAILED
            self._stats.total_errors += 1
            self._log.exception("service_close_failed")
            raise

        self._service_state = ServiceState.CLOSED
        self._stats.stopped_at = datetime.now(UTC)
        self._log.info("service_closed")
        await self.emit_event(str(ServiceTopics.stopped(self.name)), {"name": self.name})

    @asynccontextmanager
    async def run_context(self) -> AsyncIterator[Self]:
        """Load on entry, close on exit."""
        await self.load()
        try:
            yield self
        finally:
            await self.close()

    async def __aenter__(self) -> Self:
        await self.load()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # --- Lifecycle hooks (override in subclasses) ---

    async def on_load(self) -> None:
        """Called during load. Override for custom initialization."""

    async def on_close(self) -> None:
        """Called during close. Override for custom cleanup."""

    # --- Message bus integration ---

    def set_message_bus(self, bus: "MessageBus") -> None:
        """Set the message bus for this service."""
        self._message_bus = bus

    async def emit_event(self, topic: str, payload: Any) -> None:
        """Emit an event. Silently skipped when no bus is configured."""
        if not self._message_bus:
            return

        await self._message_bus.publish(Message.event(topic, self.name, payload))
        self._stats.total_messages_sent += 1
        self._stats.last_activity_at = datetime.now(UTC)
