"""Core abstractions: values, errors, configuration, services."""

from segengine.core.config import EngineConfig
from segengine.core.exceptions import (
    CatalogLoadError,
    PersistenceError,
    PersistenceTimeoutError,
    SegEngineError,
    SegmentNotFoundError,
    ValidationError,
)
from segengine.core.service import Service, ServiceMetadata, ServiceState
from segengine.core.signals import Message, MessageType
from segengine.core.values import ABSENT, ValueType, resolve, value_type

__all__ = [
    "ABSENT",
    "CatalogLoadError",
    "EngineConfig",
    "Message",
    "MessageType",
    "PersistenceError",
    "PersistenceTimeoutError",
    "SegEngineError",
    "SegmentNotFoundError",
    "Service",
    "ServiceMetadata",
    "ServiceState",
    "ValidationError",
    "ValueType",
    "resolve",
    "value_type",
]
