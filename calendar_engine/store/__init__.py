"""Event persistence: the store contract and its implementations."""

from .base import EventStore
from .http_store import HttpEventStore
from .json_store import JsonFileEventStore
from .memory_store import InMemoryEventStore

__all__ = ["EventStore", "HttpEventStore", "InMemoryEventStore", "JsonFileEventStore"]
