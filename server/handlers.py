"""Game action handlers for Ride the Bus.

Each handler corresponds to a single action type from the client and maps
the action payload onto one engine transition. Handlers are dispatched via
the HANDLERS dict; the game service persists and broadcasts the outcome.
"""

import logging
import random
from typing import Optional

import round_one
import round_three
import round_two
from game import Card, GameState, Outcome

logger = logging.getLogger(__name__)


class UnknownAction(ValueError):
    """Raised when an action type has no handler."""
    pass


def _index(value) -> Optional[int]:
    """Parse an optional index field; unparseable values never match a position."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1


# ---------------------------------------------------------------------------
# Round 1
# ---------------------------------------------------------------------------

def handle_round1_guess(data: dict, state: GameState, deck: list[Card], **kw) -> Outcome:
    return round_one.submit_guess(
        state,
        deck,
        data.get("guess"),
        card_index=_index(data.get("cardIndex")),
        player_index=_index(data.get("playerIndex")),
    )


# ---------------------------------------------------------------------------
# Round 2
# ---------------------------------------------------------------------------

def handle_round2_draw(data: dict, state: GameState, deck: list[Card], *, rng=None, **kw) -> Outcome:
    return round_two.draw_next(state, deck, rng)


def handle_round2_give_drink(data: dict, state: GameState, deck: list[Card], **kw) -> Outcome:
    return round_two.give_drink(state, deck, data.get("fromPlayerId"), data.get("toPlayerId"))


def handle_round2_acknowledge(data: dict, state: GameState, deck: list[Card], **kw) -> Outcome:
    return round_two.acknowledge(state, deck)


def handle_round2_give_card(data: dict, state: GameState, deck: list[Card], **kw) -> Outcome:
    return round_two.give_card(state, deck, data.get("fromPlayerId"), data.get("toPlayerId"))


# ---------------------------------------------------------------------------
# Round 3
# ---------------------------------------------------------------------------

def handle_round3_guess_suit(data: dict, state: GameState, deck: list[Card], **kw) -> Outcome:
    return round_three.guess_suit(state, deck, data.get("suit"))


def handle_round3_guess_up_down(data: dict, state: GameState, deck: list[Card], *, rng=None, **kw) -> Outcome:
    return round_three.guess_up_down_same(state, deck, data.get("guess"), rng)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "round1_guess": handle_round1_guess,
    "round2_draw": handle_round2_draw,
    "round2_give_drink": handle_round2_give_drink,
    "round2_acknowledge": handle_round2_acknowledge,
    "round2_give_card": handle_round2_give_card,
    "round3_guess_suit": handle_round3_guess_suit,
    "round3_guess_up_down": handle_round3_guess_up_down,
}


def dispatch(
    action: dict,
    state: GameState,
    deck: list[Card],
    rng: Optional[random.Random] = None,
) -> Outcome:
    """
    Run the handler for action["type"].

    Raises:
        UnknownAction: No handler is registered for the type.
    """
    action_type = action.get("type")
    handler = HANDLERS.get(action_type)
    if handler is None:
        raise UnknownAction(f"Unknown action type: {action_type!r}")
    return handler(action, state, deck, rng=rng)
