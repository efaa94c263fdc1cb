"""
Redis pub/sub for lobby snapshots and drink cues.

Every write to a lobby record is followed by a snapshot publish on the
lobby's channel, so every other server (and every client replica behind
it) can overwrite its copy without waiting for the next poll. Drink cues
are transient and only ever travel over pub/sub.

Snapshots carry the whole state, so subscribers may receive them in any
order and apply them idempotently.

Usage:
    pubsub = LobbyPubSub(redis_client, server_id="web-1")
    await pubsub.start()

    async def on_message(msg: PubSubMessage):
        print(f"{msg.type.value} for lobby {msg.lobby_code}")

    await pubsub.subscribe("ABCD", on_message)
    await pubsub.publish(PubSubMessage(
        type=MessageType.STATE_UPDATE,
        lobby_code="ABCD",
        data={"gameState": {...}, "deck": [...], "revision": 7},
    ))

    await pubsub.stop()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Types of messages published on a lobby channel."""

    # Full snapshot of game state + deck after a write
    STATE_UPDATE = "state_update"

    # Transient drink notification, never persisted
    DRINK_CUE = "drink_cue"


@dataclass
class PubSubMessage:
    """
    Message sent via Redis pub/sub.

    Attributes:
        type: Message type.
        lobby_code: Lobby this message is for.
        data: Payload (snapshot or cue).
        sender_id: Server ID of the publisher, used to drop our own echoes.
    """

    type: MessageType
    lobby_code: str
    data: dict
    sender_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({
            "type": self.type.value,
            "lobby_code": self.lobby_code,
            "data": self.data,
            "sender_id": self.sender_id,
        })

    @classmethod
    def from_json(cls, raw: str) -> "PubSubMessage":
        d = json.loads(raw)
        return cls(
            type=MessageType(d["type"]),
            lobby_code=d["lobby_code"],
            data=d.get("data", {}),
            sender_id=d.get("sender_id"),
        )


MessageHandler = Callable[[PubSubMessage], Awaitable[None]]


class LobbyPubSub:
    """
    Redis pub/sub for lobby channels.

    Keeps one Redis subscription per lobby with any number of local
    handlers, and runs a listener task that dispatches incoming messages.
    """

    CHANNEL_PREFIX = "rtb:lobby:"

    def __init__(
        self,
        redis_client: redis.Redis,
        server_id: str = "default",
        skip_own_messages: bool = True,
    ):
        """
        Args:
            redis_client: Async Redis client.
            server_id: Unique ID for this server instance.
            skip_own_messages: Drop messages this server published.
        """
        self.redis = redis_client
        self.server_id = server_id
        self.skip_own_messages = skip_own_messages
        self.pubsub = redis_client.pubsub()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def _channel(self, lobby_code: str) -> str:
        return f"{self.CHANNEL_PREFIX}{lobby_code}:events"

    async def subscribe(self, lobby_code: str, handler: MessageHandler) -> None:
        channel = self._channel(lobby_code)
        if channel not in self._handlers:
            self._handlers[channel] = []
            await self.pubsub.subscribe(channel)
            logger.debug(f"Subscribed to channel {channel}")
        self._handlers[channel].append(handler)

    async def unsubscribe(self, lobby_code: str) -> None:
        channel = self._channel(lobby_code)
        if channel in self._handlers:
            del self._handlers[channel]
            await self.pubsub.unsubscribe(channel)
            logger.debug(f"Unsubscribed from channel {channel}")

    async def remove_handler(self, lobby_code: str, handler: MessageHandler) -> None:
        """Remove one handler; the channel is dropped once none are left."""
        channel = self._channel(lobby_code)
        handlers = self._handlers.get(channel)
        if handlers is None:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            await self.unsubscribe(lobby_code)

    async def publish(self, message: PubSubMessage) -> int:
        """
        Publish a message to a lobby channel.

        Returns:
            Number of subscribers that received the message.
        """
        message.sender_id = self.server_id
        channel = self._channel(message.lobby_code)
        count = await self.redis.publish(channel, message.to_json())
        logger.debug(f"Published {message.type.value} to {channel} ({count} receivers)")
        return count

    async def start(self) -> None:
        """Start listening for messages."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._listen())
        logger.info("LobbyPubSub listener started")

    async def stop(self) -> None:
        """Stop listening and clean up."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self.pubsub.close()
        self._handlers.clear()
        logger.info("LobbyPubSub listener stopped")

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self.pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    await self._handle_message(message)
            except asyncio.CancelledError:
                break
            except redis.ConnectionError as e:
                logger.error(f"PubSub connection error: {e}")
                await asyncio.sleep(1)
            except Exception as e:
                logger.error(f"PubSub listener error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _handle_message(self, raw_message: dict) -> None:
        try:
            channel = raw_message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode()

            data = raw_message["data"]
            if isinstance(data, bytes):
                data = data.decode()

            msg = PubSubMessage.from_json(data)
            if self.skip_own_messages and msg.sender_id == self.server_id:
                return

            for handler in list(self._handlers.get(channel, [])):
                try:
                    await handler(msg)
                except Exception as e:
                    logger.error(f"Error in pubsub handler for {msg.lobby_code}: {e}", exc_info=True)

        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Invalid pubsub message: {e}")
