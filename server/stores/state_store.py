"""
Redis-backed lobby record store.

Each lobby is a single Redis hash holding the lobby's players, the shared
game state and the deck, all JSON encoded, plus a revision counter. Every
write replaces the named fields wholesale and bumps the revision.

Writes are last-write-wins by default. Passing expected_revision turns a
write into a compare-and-set: the hash is WATCHed, the revision compared,
and the update applied in MULTI/EXEC. A mismatch or a concurrent write
raises ConcurrencyError.

Key patterns:
- rtb:lobby:{code}  -> Hash (players, game_state, deck, revision)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from config import config

logger = logging.getLogger(__name__)


class ConcurrencyError(Exception):
    """Raised when a lobby record changed since the expected revision."""

    def __init__(self, code: str, expected: int, actual: Optional[int] = None):
        self.code = code
        self.expected = expected
        self.actual = actual
        if actual is None:
            detail = "concurrent write"
        else:
            detail = f"revision is {actual}"
        super().__init__(f"Lobby {code}: expected revision {expected}, {detail}")


class PersistenceWriteFailure(Exception):
    """Raised when the backing store rejects or fails a write."""
    pass


@dataclass
class LobbyRecord:
    """
    A lobby as stored.

    Attributes:
        code: Lobby code.
        players: Lobby players in join order, each {"id", "name"}.
        game_state: Wire-format game state, or None before start-game.
        deck: Wire-format deck, or None before start-game.
        revision: Write counter, 0 for a record never written through this store.
    """

    code: str
    players: list[dict] = field(default_factory=list)
    game_state: Optional[dict] = None
    deck: Optional[list[dict]] = None
    revision: int = 0

    @property
    def started(self) -> bool:
        return self.game_state is not None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "players": self.players,
            "gameState": self.game_state,
            "deck": self.deck,
            "revision": self.revision,
        }


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode()
    return value


class StateStore:
    """Redis-backed store for lobby records."""

    LOBBY_KEY = "rtb:lobby:{code}"

    def __init__(self, redis_client: redis.Redis, ttl: Optional[timedelta] = None):
        """
        Args:
            redis_client: Async Redis client.
            ttl: Expiry refreshed on every write (defaults to LOBBY_TTL_HOURS).
        """
        self.redis = redis_client
        self.ttl = ttl or timedelta(hours=config.LOBBY_TTL_HOURS)

    def _key(self, code: str) -> str:
        return self.LOBBY_KEY.format(code=code)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def read(self, code: str) -> Optional[LobbyRecord]:
        """
        Load a lobby record.

        Returns:
            The record, or None if the lobby does not exist.
        """
        raw = await self.redis.hgetall(self._key(code))
        if not raw:
            return None
        data = {_decode(k): _decode(v) for k, v in raw.items()}

        def load(name: str):
            value = data.get(name)
            return json.loads(value) if value else None

        return LobbyRecord(
            code=code,
            players=load("players") or [],
            game_state=load("game_state"),
            deck=load("deck"),
            revision=int(data.get("revision") or 0),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def write(
        self,
        code: str,
        players: Optional[list[dict]] = None,
        game_state: Optional[dict] = None,
        deck: Optional[list[dict]] = None,
        expected_revision: Optional[int] = None,
    ) -> int:
        """
        Replace the named fields of a lobby record.

        Fields left as None are not touched.

        Args:
            code: Lobby code.
            players: New player list.
            game_state: New wire-format game state.
            deck: New wire-format deck.
            expected_revision: If given, only write when the stored revision
                still equals it.

        Returns:
            The new revision.

        Raises:
            ConcurrencyError: expected_revision no longer matches.
            PersistenceWriteFailure: Redis failed the write.
        """
        mapping = {}
        if players is not None:
            mapping["players"] = json.dumps(players)
        if game_state is not None:
            mapping["game_state"] = json.dumps(game_state)
        if deck is not None:
            mapping["deck"] = json.dumps(deck)

        key = self._key(code)
        try:
            if expected_revision is None:
                revision = await self._write_unchecked(key, mapping)
            else:
                revision = await self._write_checked(code, key, mapping, expected_revision)
        except ConcurrencyError:
            raise
        except RedisError as e:
            raise PersistenceWriteFailure(f"Failed to write lobby {code}: {e}") from e

        logger.debug(f"Wrote {sorted(mapping)} for lobby {code} at revision {revision}")
        return revision

    async def _write_unchecked(self, key: str, mapping: dict) -> int:
        pipe = self.redis.pipeline()
        if mapping:
            pipe.hset(key, mapping=mapping)
        pipe.hincrby(key, "revision", 1)
        pipe.expire(key, int(self.ttl.total_seconds()))
        results = await pipe.execute()
        return int(results[1 if mapping else 0])

    async def _write_checked(self, code: str, key: str, mapping: dict, expected_revision: int) -> int:
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.hget(key, "revision")
                current_revision = int(_decode(current)) if current is not None else 0
                if current_revision != expected_revision:
                    raise ConcurrencyError(code, expected_revision, current_revision)

                pipe.multi()
                if mapping:
                    pipe.hset(key, mapping=mapping)
                pipe.hincrby(key, "revision", 1)
                pipe.expire(key, int(self.ttl.total_seconds()))
                results = await pipe.execute()
            except WatchError:
                raise ConcurrencyError(code, expected_revision)
        return int(results[1 if mapping else 0])

    async def delete(self, code: str) -> bool:
        """Remove a lobby record. Returns True if it existed."""
        return bool(await self.redis.delete(self._key(code)))
