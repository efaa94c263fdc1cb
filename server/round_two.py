"""
Round 2: Good, Bad, Ugly.

Cards are drawn one at a time and each draw carries the next action in the
repeating cycle good -> bad -> ugly:

    good: everyone holding the drawn rank gives out one drink per match
    bad:  everyone holding the drawn rank drinks (one acknowledgement)
    ugly: everyone holding the drawn rank gives one matching card away per match

Obligations are counted once, at draw time ("original match count"). A card
received through an Ugly transfer never creates a new obligation for the same
draw. When the deck runs out the round ends and the player with the most
cards becomes the bus driver.
"""

import logging
import random
from typing import Optional

from deck import draw, reset_and_shuffle, undrawn_count
from game import (
    Card,
    DrinkCue,
    GamePhase,
    GameState,
    Outcome,
    PlayerCard,
    RoundThreeState,
    RoundTwoState,
    working_copy,
)

logger = logging.getLogger(__name__)


def resolution_pending(rs: RoundTwoState) -> bool:
    """
    Whether the displayed card still has unresolved obligations.

    A displayed card with no match holders never blocks the next draw.
    """
    if rs.card_drawn is None:
        return False
    if rs.current_action == "bad":
        return bool(rs.original_matches)
    return not rs.quotas_exhausted()


def _clear_card(rs: RoundTwoState) -> None:
    rs.card_drawn = None
    rs.original_matches = {}
    rs.given_counts = {}


def draw_next(state: GameState, deck: list[Card], rng: Optional[random.Random] = None) -> Outcome:
    """
    Draw the next Round 2 card, or end the round if the deck is exhausted.

    Args:
        state: Current game state (not mutated).
        deck: Current deck (not mutated).
        rng: Optional random source for the end-of-round reshuffle.
    """
    if state.phase != GamePhase.ROUND2_GOODBADUGLY:
        logger.debug(f"Ignoring round 2 draw during {state.phase.value}")
        return Outcome.unchanged(state, deck)

    if resolution_pending(state.round_state):
        logger.debug("Ignoring round 2 draw while the displayed card is unresolved")
        return Outcome.unchanged(state, deck)

    new_state, new_deck = working_copy(state, deck)

    if undrawn_count(new_deck) == 0:
        return complete_round(new_state, new_deck, rng)

    rs = new_state.round_state
    card = draw(new_deck)
    rs.card_drawn = card
    rs.round2_index += 1

    rs.original_matches = {}
    for player in new_state.players:
        matches = player.count_rank(card.rank)
        if matches > 0:
            rs.original_matches[player.id] = matches
    rs.given_counts = {pid: 0 for pid in rs.original_matches}

    logger.debug(
        f"Round 2 draw #{rs.round2_index}: {card} ({rs.current_action}), "
        f"{len(rs.original_matches)} players matching"
    )
    return Outcome(state=new_state, deck=new_deck)


def complete_round(state: GameState, deck: list[Card], rng: Optional[random.Random] = None) -> Outcome:
    """
    End Round 2 and set up the bus-driver round.

    Operates on working copies: the caller hands over state and deck it owns.
    The bus driver is the player with the most cards; ties go to the earliest
    player in turn order.
    """
    bus_driver = state.players[0]
    for player in state.players[1:]:
        if len(player.cards) > len(bus_driver.cards):
            bus_driver = player

    reset_and_shuffle(deck, rng)
    for player in state.players:
        player.cards = []

    state.enter_phase(GamePhase.ROUND3_BUSDRIVER, RoundThreeState(bus_driver_id=bus_driver.id))
    logger.info(f"Round 2 complete, {bus_driver.name} drives the bus ({len(deck)} cards reshuffled)")
    return Outcome(state=state, deck=deck, reshuffled=True)


def _give(
    state: GameState,
    deck: list[Card],
    giver_id: Optional[str],
    recipient_id: Optional[str],
    action: str,
) -> Outcome:
    if state.phase != GamePhase.ROUND2_GOODBADUGLY:
        return Outcome.unchanged(state, deck)

    rs = state.round_state
    if rs.current_action != action:
        logger.debug(f"Ignoring {action} give, displayed card is {rs.current_action}")
        return Outcome.unchanged(state, deck)

    if rs.remaining_quota(giver_id) <= 0:
        logger.debug(f"Ignoring {action} give from {giver_id}: no obligation left")
        return Outcome.unchanged(state, deck)

    if recipient_id == giver_id or state.get_player(recipient_id) is None:
        logger.debug(f"Ignoring {action} give from {giver_id} to invalid recipient {recipient_id}")
        return Outcome.unchanged(state, deck)

    new_state, new_deck = working_copy(state, deck)
    new_rs = new_state.round_state
    giver = new_state.get_player(giver_id)
    recipient = new_state.get_player(recipient_id)
    outcome = Outcome(state=new_state, deck=new_deck)

    if action == "ugly":
        match_idx = giver.first_index_of_rank(new_rs.card_drawn.rank)
        if match_idx is None:
            logger.warning(f"{giver.name} owes an ugly card but holds no {new_rs.card_drawn.rank.value}")
            return Outcome.unchanged(state, deck)
        moved = giver.cards.pop(match_idx)
        recipient.cards.append(PlayerCard(card=moved.card, revealed=True))
    else:
        outcome.cues.append(DrinkCue(reason="good_give", player_ids=[recipient.id], from_player_id=giver.id))

    new_rs.given_counts[giver.id] = new_rs.given_counts.get(giver.id, 0) + 1

    if new_rs.quotas_exhausted():
        _clear_card(new_rs)

    return outcome


def give_drink(state: GameState, deck: list[Card], giver_id: Optional[str], recipient_id: Optional[str]) -> Outcome:
    """Good card: a match holder names who drinks. No cards move."""
    return _give(state, deck, giver_id, recipient_id, "good")


def give_card(state: GameState, deck: list[Card], giver_id: Optional[str], recipient_id: Optional[str]) -> Outcome:
    """Ugly card: a match holder hands their first matching card to the recipient, face-up."""
    return _give(state, deck, giver_id, recipient_id, "ugly")


def acknowledge(state: GameState, deck: list[Card]) -> Outcome:
    """
    Bad card: one acknowledgement clears the displayed card.

    Duplicates are not tracked per player here, unlike Good and Ugly.
    """
    if state.phase != GamePhase.ROUND2_GOODBADUGLY:
        return Outcome.unchanged(state, deck)

    rs = state.round_state
    if rs.current_action != "bad":
        logger.debug(f"Ignoring acknowledgement, displayed card is {rs.current_action}")
        return Outcome.unchanged(state, deck)

    new_state, new_deck = working_copy(state, deck)
    new_rs = new_state.round_state
    outcome = Outcome(state=new_state, deck=new_deck)
    if new_rs.original_matches:
        outcome.cues.append(DrinkCue(reason="bad_match", player_ids=list(new_rs.original_matches)))
    _clear_card(new_rs)
    return outcome
