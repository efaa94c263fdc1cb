"""Services package for Ride the Bus game logic and state sync."""

from .game_service import ActionResult, GameService, LobbyNotFound
from .sync import LocalReplica, SnapshotPoller, SyncBroadcaster

__all__ = [
    "ActionResult",
    "GameService",
    "LobbyNotFound",
    "LocalReplica",
    "SnapshotPoller",
    "SyncBroadcaster",
]
