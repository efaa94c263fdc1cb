"""Stores package for Ride the Bus lobby persistence."""

from .state_store import (
    ConcurrencyError,
    LobbyRecord,
    PersistenceWriteFailure,
    StateStore,
)
from .pubsub import LobbyPubSub, PubSubMessage, MessageType

__all__ = [
    # State store
    "StateStore",
    "LobbyRecord",
    "ConcurrencyError",
    "PersistenceWriteFailure",
    # Pub/sub
    "LobbyPubSub",
    "PubSubMessage",
    "MessageType",
]
