"""Message bus for engine events."""

from segengine.bus.message_bus import MessageBus
from segengine.bus.topics import SegmentTopics, ServiceTopics, Topic

__all__ = ["MessageBus", "SegmentTopics", "ServiceTopics", "Topic"]
