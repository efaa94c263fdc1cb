"""
Game service: the single entry point for starting games and applying actions.

Every action, from a human over HTTP or from a bot task, goes through
apply_action:

1. Read the lobby record from the StateStore.
2. Run the engine transition (pure; works on copies).
3. Write the new state and deck (last-write-wins unless a revision is expected).
4. Publish the snapshot and any drink cues.
5. Schedule a bot guess if a bot is up next.

Stale or invalid actions are no-ops: nothing is written and the stored state
is echoed back with applied=False. A failed write is not rolled back or
retried; the computed state is returned with persisted=False.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from bots import BotAutoplay
from config import config
from deck import DeckExhausted, deck_from_list, deck_to_list
from game import DrinkCue, GameState
from handlers import dispatch
from logging_config import action_var, get_logger, lobby_code_var
from round_one import GameStartError, deal_game
from services.sync import SyncBroadcaster
from stores.state_store import LobbyRecord, PersistenceWriteFailure, StateStore

logger = get_logger(__name__)


class LobbyNotFound(Exception):
    """Raised when no record exists for a lobby code."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Lobby {code} not found")


@dataclass
class ActionResult:
    """What an action (or start-game) produced."""

    applied: bool
    game_state: Optional[dict]
    deck: Optional[list[dict]]
    revision: int
    cues: list[DrinkCue] = field(default_factory=list)
    persisted: bool = True
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "applied": self.applied,
            "gameState": self.game_state,
            "deck": self.deck,
            "revision": self.revision,
            "cues": [cue.to_dict() for cue in self.cues],
            "persisted": self.persisted,
        }
        if self.warning:
            data["warning"] = self.warning
        return data


class GameService:
    """
    Applies engine transitions to stored lobbies.

    Args:
        store: Lobby record store.
        broadcaster: Snapshot/cue publisher (optional; nothing is published without it).
        enable_bots: Schedule bot guesses after writes.
        bot_delay: Override for BOT_GUESS_DELAY_SECONDS.
        revision_check: Compare-and-set every write (defaults to REVISION_CHECK).
        rng: Random source for shuffles and bot guesses.
    """

    def __init__(
        self,
        store: StateStore,
        broadcaster: Optional[SyncBroadcaster] = None,
        enable_bots: bool = True,
        bot_delay: Optional[float] = None,
        revision_check: Optional[bool] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.revision_check = config.REVISION_CHECK if revision_check is None else revision_check
        self.rng = rng
        self.bots = BotAutoplay(self.apply_action, delay=bot_delay, rng=rng) if enable_bots else None

    async def get_lobby(self, code: str) -> LobbyRecord:
        record = await self.store.read(code)
        if record is None:
            raise LobbyNotFound(code)
        return record

    async def start_game(self, code: str) -> ActionResult:
        """
        Deal a new game for a lobby.

        Raises:
            LobbyNotFound: Unknown code.
            GameStartError: Already started, too few players, or not enough cards.
            ConcurrencyError: The lobby changed while dealing.
            PersistenceWriteFailure: The deal could not be stored.
        """
        record = await self.get_lobby(code)
        if record.started:
            raise GameStartError("Game already started")

        try:
            state, deck = deal_game(record.players, self.rng)
        except DeckExhausted as e:
            raise GameStartError("Not enough cards in deck") from e

        game_state = state.to_dict()
        deck_list = deck_to_list(deck)
        revision = await self.store.write(
            code,
            game_state=game_state,
            deck=deck_list,
            expected_revision=record.revision,
        )
        logger.with_context(lobby_code=code, revision=revision).info(
            f"Game started with {len(state.players)} players"
        )

        await self._broadcast(code, game_state, deck_list, revision, [])
        self._schedule_bots(code, state, revision)
        return ActionResult(applied=True, game_state=game_state, deck=deck_list, revision=revision)

    async def update_game(
        self,
        code: str,
        game_state: dict,
        deck: Optional[list[dict]] = None,
        expected_revision: Optional[int] = None,
    ) -> ActionResult:
        """
        Store a client-computed state as-is.

        The state is parsed first so a malformed payload never reaches the store.

        Raises:
            LobbyNotFound: Unknown code.
            ValueError, KeyError: Malformed state or deck.
            ConcurrencyError: expected_revision no longer matches.
        """
        await self.get_lobby(code)
        state = GameState.from_dict(game_state)
        if deck is not None:
            deck_from_list(deck)

        revision = await self.store.write(
            code,
            game_state=game_state,
            deck=deck,
            expected_revision=expected_revision,
        )
        await self._broadcast(code, game_state, deck, revision, [])
        self._schedule_bots(code, state, revision)
        return ActionResult(applied=True, game_state=game_state, deck=deck, revision=revision)

    async def apply_action(self, code: str, action: dict, expected_revision: Optional[int] = None) -> ActionResult:
        """
        Apply one client or bot action.

        Args:
            code: Lobby code.
            action: {"type": ..., plus type-specific fields}.
            expected_revision: Only write if the record is still at this revision.

        Raises:
            LobbyNotFound: Unknown code.
            GameStartError: The game has not been started.
            UnknownAction: No handler for action["type"].
            ConcurrencyError: The record moved past expected_revision.
        """
        code_token = lobby_code_var.set(code)
        action_token = action_var.set(action.get("type"))
        try:
            return await self._apply_action(code, action, expected_revision)
        finally:
            action_var.reset(action_token)
            lobby_code_var.reset(code_token)

    async def _apply_action(self, code: str, action: dict, expected_revision: Optional[int]) -> ActionResult:
        record = await self.get_lobby(code)
        if not record.started:
            raise GameStartError("Game has not started")

        state = GameState.from_dict(record.game_state)
        deck = deck_from_list(record.deck or [])
        outcome = dispatch(action, state, deck, rng=self.rng)

        if not outcome.applied:
            return ActionResult(
                applied=False,
                game_state=record.game_state,
                deck=record.deck,
                revision=record.revision,
            )

        if expected_revision is None and self.revision_check:
            expected_revision = record.revision

        game_state = outcome.state.to_dict()
        deck_list = deck_to_list(outcome.deck)
        result = ActionResult(
            applied=True,
            game_state=game_state,
            deck=deck_list,
            revision=record.revision,
            cues=outcome.cues,
        )

        try:
            result.revision = await self.store.write(
                code,
                game_state=game_state,
                deck=deck_list,
                expected_revision=expected_revision,
            )
        except PersistenceWriteFailure as e:
            logger.warning(f"Action not persisted: {e}")
            result.persisted = False
            result.warning = "State could not be saved; other players may not see this move"
            return result

        if outcome.reshuffled:
            logger.info(f"Deck reshuffled during {outcome.state.phase.value}")

        await self._broadcast(code, game_state, deck_list, result.revision, outcome.cues)
        self._schedule_bots(code, outcome.state, result.revision)
        return result

    async def _broadcast(
        self,
        code: str,
        game_state: Optional[dict],
        deck: Optional[list],
        revision: int,
        cues: list[DrinkCue],
    ) -> None:
        if self.broadcaster is None:
            return
        await self.broadcaster.publish_state(code, game_state, deck, revision)
        for cue in cues:
            await self.broadcaster.publish_drink_cue(code, cue)

    def _schedule_bots(self, code: str, state: GameState, revision: int) -> None:
        if self.bots is not None:
            self.bots.schedule(code, state, revision)

    async def shutdown(self) -> None:
        if self.bots is not None:
            await self.bots.shutdown()
