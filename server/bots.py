"""
Bot players for Round 1.

A bot is any player whose id starts with BOT_ID_PREFIX. Bots only ever act
in round1_guessing: when it is a bot's turn, a task waits a short delay and
then submits a random guess through the same action entry point humans use.

Tasks are keyed by lobby code and the revision they were scheduled against.
A newer schedule for the same lobby replaces the older task, and every
submission carries the expected revision plus card and player index, so a
superseded guess is rejected rather than applied twice.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from config import config
from constants import BOT_ID_PREFIX, HAND_SIZE
from game import GamePhase, GameState, Suit
from stores.state_store import ConcurrencyError

logger = logging.getLogger(__name__)

# submit(lobby_code, action, expected_revision=...)
SubmitAction = Callable[..., Awaitable[object]]


def is_bot(player_id: Optional[str]) -> bool:
    return bool(player_id) and player_id.startswith(BOT_ID_PREFIX)


def choose_guess(card_index: int, rng: Optional[random.Random] = None) -> str:
    """
    Pick a random guess for a hand position.

    Position 1 leans away from "higher": it is picked about a third of the
    time and "lower" and "same" split the rest.
    """
    r = rng or random
    if card_index == 0:
        return "red" if r.random() < 0.5 else "black"
    if card_index == 1:
        if r.random() < 1 / 3:
            return "higher"
        return "lower" if r.random() < 0.5 else "same"
    if card_index == 2:
        return "between" if r.random() < 0.5 else "outside"
    return r.choice([s.value for s in Suit])


def pending_bot_turn(state: Optional[GameState]) -> Optional[tuple[int, int]]:
    """
    (player_index, card_index) if a bot owes a Round 1 guess, else None.
    """
    if state is None or state.phase != GamePhase.ROUND1_GUESSING:
        return None
    player_index = state.round_state.current_player_index
    if player_index >= len(state.players):
        return None
    player = state.players[player_index]
    if not is_bot(player.id) or player.current_card_index >= HAND_SIZE:
        return None
    return player_index, player.current_card_index


class BotAutoplay:
    """Schedules delayed bot guesses, one pending task per lobby."""

    def __init__(
        self,
        submit: SubmitAction,
        delay: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self._submit = submit
        self.delay = config.BOT_GUESS_DELAY_SECONDS if delay is None else delay
        self._rng = rng
        self._tasks: dict[str, tuple[int, asyncio.Task]] = {}

    def pending_revision(self, lobby_code: str) -> Optional[int]:
        entry = self._tasks.get(lobby_code)
        return entry[0] if entry else None

    def schedule(self, lobby_code: str, state: Optional[GameState], revision: int) -> bool:
        """
        Schedule a bot guess if the current Round 1 player is a bot.

        Any older task for the lobby is cancelled, except the task doing the
        scheduling (a bot's own submission chains into the next bot turn).

        Returns:
            True if a task was scheduled.
        """
        turn = pending_bot_turn(state)
        existing = self._tasks.get(lobby_code)
        if existing:
            old_revision, old_task = existing
            if old_revision > revision or (old_revision == revision and turn is not None):
                return False
            if old_task is not asyncio.current_task():
                old_task.cancel()
            self._tasks.pop(lobby_code, None)

        if turn is None:
            return False

        player_index, card_index = turn
        task = asyncio.create_task(self._play(lobby_code, revision, player_index, card_index))
        self._tasks[lobby_code] = (revision, task)
        logger.debug(
            f"Scheduled bot guess in {lobby_code} for player {player_index} "
            f"card {card_index} at revision {revision}"
        )
        return True

    async def _play(self, lobby_code: str, revision: int, player_index: int, card_index: int) -> None:
        try:
            await asyncio.sleep(self.delay)
            action = {
                "type": "round1_guess",
                "guess": choose_guess(card_index, self._rng),
                "cardIndex": card_index,
                "playerIndex": player_index,
            }
            await self._submit(lobby_code, action, expected_revision=revision)
        except asyncio.CancelledError:
            raise
        except ConcurrencyError:
            logger.debug(f"Bot guess in {lobby_code} superseded at revision {revision}")
        except Exception as e:
            logger.error(f"Bot guess in {lobby_code} failed: {e}", exc_info=True)
        finally:
            entry = self._tasks.get(lobby_code)
            if entry and entry[1] is asyncio.current_task():
                self._tasks.pop(lobby_code, None)

    def cancel(self, lobby_code: str) -> None:
        entry = self._tasks.pop(lobby_code, None)
        if entry:
            entry[1].cancel()

    async def shutdown(self) -> None:
        """Cancel every pending bot task and wait for them to finish."""
        tasks = [task for _, task in self._tasks.values()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
