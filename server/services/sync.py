"""
Lobby state propagation.

Writers publish a full snapshot after every successful write. Readers keep
a LocalReplica per lobby that is fed from two sources: pub/sub pushes and a
fixed-interval poll of the store. Both sources deliver whole snapshots, so
the replica simply overwrites its copy, skipping snapshots that are deeply
equal to what it already holds.

The server process only publishes. LocalReplica and SnapshotPoller are the
consumer side, run by whatever process mirrors a lobby. That process starts
its own LobbyPubSub listener before subscribing.

Usage:
    broadcaster = SyncBroadcaster(pubsub)
    await broadcaster.publish_state("ABCD", state.to_dict(), deck_to_list(deck), 7)

    await pubsub.start()
    replica = LocalReplica("ABCD", on_change=render)
    await pubsub.subscribe("ABCD", replica.handle_message)
    poller = SnapshotPoller(store, replica)
    poller.start()
"""

import asyncio
import copy
import logging
from typing import Callable, Optional

from redis.exceptions import RedisError

from config import config
from game import DrinkCue
from stores.pubsub import LobbyPubSub, MessageType, PubSubMessage
from stores.state_store import StateStore

logger = logging.getLogger(__name__)


class SyncBroadcaster:
    """Publishes lobby snapshots and drink cues. Publish failures are logged, never raised."""

    def __init__(self, pubsub: LobbyPubSub):
        self.pubsub = pubsub

    async def publish_state(self, lobby_code: str, game_state: Optional[dict], deck: Optional[list], revision: int) -> bool:
        return await self._publish(PubSubMessage(
            type=MessageType.STATE_UPDATE,
            lobby_code=lobby_code,
            data={"gameState": game_state, "deck": deck, "revision": revision},
        ))

    async def publish_drink_cue(self, lobby_code: str, cue: DrinkCue) -> bool:
        return await self._publish(PubSubMessage(
            type=MessageType.DRINK_CUE,
            lobby_code=lobby_code,
            data=cue.to_dict(),
        ))

    async def _publish(self, message: PubSubMessage) -> bool:
        try:
            await self.pubsub.publish(message)
            return True
        except RedisError as e:
            logger.warning(f"Failed to publish {message.type.value} for {message.lobby_code}: {e}")
            return False


class LocalReplica:
    """
    One reader's copy of a lobby's game state and deck.

    Attributes:
        lobby_code: Lobby this replica mirrors.
        game_state: Last applied wire-format state (None until the first snapshot).
        deck: Last applied wire-format deck.
        revision: Revision of the last applied snapshot, when known.
    """

    def __init__(
        self,
        lobby_code: str,
        on_change: Optional[Callable[[dict, Optional[list]], None]] = None,
        on_cue: Optional[Callable[[dict], None]] = None,
    ):
        self.lobby_code = lobby_code
        self.game_state: Optional[dict] = None
        self.deck: Optional[list] = None
        self.revision: Optional[int] = None
        self._on_change = on_change
        self._on_cue = on_cue

    def apply(self, game_state: Optional[dict], deck: Optional[list], revision: Optional[int] = None) -> bool:
        """
        Overwrite the replica with a snapshot.

        Returns:
            True if the snapshot differed from the current copy.
        """
        if game_state is None:
            return False
        if game_state == self.game_state and deck == self.deck:
            return False

        self.game_state = copy.deepcopy(game_state)
        self.deck = copy.deepcopy(deck)
        if revision is not None:
            self.revision = revision
        if self._on_change:
            self._on_change(self.game_state, self.deck)
        return True

    async def handle_message(self, msg: PubSubMessage) -> None:
        """Pub/sub handler for this lobby's channel."""
        if msg.lobby_code != self.lobby_code:
            return
        if msg.type == MessageType.STATE_UPDATE:
            self.apply(msg.data.get("gameState"), msg.data.get("deck"), msg.data.get("revision"))
        elif msg.type == MessageType.DRINK_CUE and self._on_cue:
            self._on_cue(msg.data)


class SnapshotPoller:
    """Re-reads a lobby record at a fixed interval and feeds it to a replica."""

    def __init__(self, store: StateStore, replica: LocalReplica, interval: Optional[float] = None):
        self.store = store
        self.replica = replica
        self.interval = config.POLL_INTERVAL_SECONDS if interval is None else interval
        self._task: Optional[asyncio.Task] = None

    async def poll_once(self) -> bool:
        """
        Read the record once.

        Returns:
            True if the replica changed.
        """
        record = await self.store.read(self.replica.lobby_code)
        if record is None:
            return False
        return self.replica.apply(record.game_state, record.deck, record.revision)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while True:
            try:
                await self.poll_once()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Snapshot poll failed for {self.replica.lobby_code}: {e}")
                await asyncio.sleep(self.interval)
