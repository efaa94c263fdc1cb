"""
Round 3: the bus driver.

The bus driver first guesses the suit of a fresh card, which starts the
table. Then they call higher, lower or same for each next card against the
last one on the table. A right call extends the streak; a wrong call resets
it to zero and rotates to the next partner. The ride is over once the streak
reaches BUS_DRIVER_TARGET; the phase itself never changes.

When the deck runs dry mid-streak, every drawn card except the last table
card goes back into the deck and the guess has to be made again.
"""

import logging
import random
from typing import Optional

from constants import BUS_DRIVER_TARGET, SUIT_CALL_DRINKS, UP_DOWN_GUESSES
from deck import DeckExhausted, draw, reshuffle_drawn_except, undrawn_count
from game import (
    Card,
    DrinkCue,
    GamePhase,
    GameState,
    Outcome,
    PlayerState,
    Suit,
    working_copy,
)

logger = logging.getLogger(__name__)

SUIT_NAMES = frozenset(s.value for s in Suit)


def is_complete(state: GameState) -> bool:
    """Whether the bus driver has reached the target streak."""
    return (
        state.phase == GamePhase.ROUND3_BUSDRIVER
        and state.round_state.correct_guesses >= BUS_DRIVER_TARGET
    )


def partner_of(state: GameState) -> Optional[PlayerState]:
    """The player currently riding with the bus driver."""
    if state.phase != GamePhase.ROUND3_BUSDRIVER:
        return None
    rs = state.round_state
    others = [p for p in state.players if p.id != rs.bus_driver_id]
    if not others:
        return None
    return others[rs.partner_index % len(others)]


def guess_suit(state: GameState, deck: list[Card], suit: Optional[str]) -> Outcome:
    """
    Draw the first table card and check the bus driver's suit call.

    The card goes on the table either way; a right call starts the streak
    at 1 and lets the driver hand out drinks, a wrong one starts it at 0.
    """
    if state.phase != GamePhase.ROUND3_BUSDRIVER or state.round_state.cards:
        logger.debug("Ignoring suit guess outside the suit sub-state")
        return Outcome.unchanged(state, deck)

    if suit not in SUIT_NAMES:
        logger.debug(f"Ignoring invalid suit guess {suit!r}")
        return Outcome.unchanged(state, deck)

    new_state, new_deck = working_copy(state, deck)
    rs = new_state.round_state
    try:
        card = draw(new_deck)
    except DeckExhausted:
        logger.warning("No cards available for the bus driver's suit guess")
        return Outcome.unchanged(state, deck)

    outcome = Outcome(state=new_state, deck=new_deck)
    rs.cards = [card]
    if card.suit.value == suit:
        rs.correct_guesses = 1
        outcome.cues.append(DrinkCue(
            reason="bus_driver_give",
            player_ids=[],
            from_player_id=rs.bus_driver_id,
            drinks=SUIT_CALL_DRINKS,
        ))
    else:
        rs.correct_guesses = 0
        outcome.cues.append(DrinkCue(reason="bus_driver_miss", player_ids=[rs.bus_driver_id]))
    return outcome


def guess_up_down_same(
    state: GameState,
    deck: list[Card],
    guess: Optional[str],
    rng: Optional[random.Random] = None,
) -> Outcome:
    """
    Resolve a higher/lower/same call against the last table card.

    If the deck is exhausted, reshuffle instead: keep the last table card,
    return the rest to the deck, and leave the guess unconsumed
    (outcome.reshuffled is True; the caller resubmits).
    """
    if state.phase != GamePhase.ROUND3_BUSDRIVER or not state.round_state.cards:
        logger.debug("Ignoring higher/lower/same guess outside the streak sub-state")
        return Outcome.unchanged(state, deck)

    if is_complete(state):
        logger.debug("Ignoring higher/lower/same guess, ride already complete")
        return Outcome.unchanged(state, deck)

    if guess not in UP_DOWN_GUESSES:
        logger.debug(f"Ignoring invalid higher/lower/same guess {guess!r}")
        return Outcome.unchanged(state, deck)

    if undrawn_count(deck) == 0:
        return _reshuffle_table(state, deck, rng)

    new_state, new_deck = working_copy(state, deck)
    rs = new_state.round_state
    last_value = rs.cards[-1].value()
    card = draw(new_deck)
    value = card.value()

    if guess == "higher":
        is_correct = value > last_value
    elif guess == "lower":
        is_correct = value < last_value
    else:
        is_correct = value == last_value

    outcome = Outcome(state=new_state, deck=new_deck)
    rs.cards.append(card)

    if is_correct:
        rs.correct_guesses += 1
        if rs.correct_guesses >= BUS_DRIVER_TARGET:
            logger.info(f"Bus driver finished the ride with {len(rs.cards)} cards on the table")
        return outcome

    partner = partner_of(new_state)
    drinkers = [rs.bus_driver_id] + ([partner.id] if partner else [])
    outcome.cues.append(DrinkCue(reason="bus_driver_miss", player_ids=drinkers))
    rs.correct_guesses = 0
    rs.partner_index += 1
    return outcome


def _reshuffle_table(state: GameState, deck: list[Card], rng: Optional[random.Random]) -> Outcome:
    new_state, new_deck = working_copy(state, deck)
    rs = new_state.round_state
    rs.cards = rs.cards[-1:]
    returned = reshuffle_drawn_except(new_deck, rs.cards, rng)
    if returned == 0:
        logger.warning("Deck exhausted with nothing drawn to reshuffle back in")
        return Outcome.unchanged(state, deck)

    logger.info(f"Bus driver deck exhausted, reshuffled {returned} cards back in")
    return Outcome(state=new_state, deck=new_deck, reshuffled=True)
