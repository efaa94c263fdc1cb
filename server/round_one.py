"""
Round 1: dealing and the four sequential guesses.

Each player is dealt four face-down cards. On their turn they guess the
cards in order:

    [0] red or black
    [1] higher, lower or same as card 0
    [2] between, outside or same relative to cards 0 and 1
    [3] the exact suit

A wrong guess means a drink. After card 3 the turn passes to the next
player; when it wraps back to player 0 the game moves to Round 2.
"""

import logging
import random
from typing import Optional

from constants import HAND_SIZE, MIN_PLAYERS, ROUND1_ALLOWED_GUESSES
from deck import DeckExhausted, build_game_deck, draw
from game import (
    Card,
    DrinkCue,
    GamePhase,
    GameState,
    Outcome,
    PlayerCard,
    PlayerState,
    RoundOneState,
    RoundTwoState,
    working_copy,
)

logger = logging.getLogger(__name__)


class GameStartError(Exception):
    """Raised when a game cannot be started."""
    pass


def deal_game(players: list[dict], rng: Optional[random.Random] = None) -> tuple[GameState, list[Card]]:
    """
    Build the opening state for a lobby.

    Args:
        players: Lobby players in join order, each {"id", "name"}.
        rng: Optional random source for deterministic shuffles.

    Returns:
        (state in round1_guessing, deck with the dealt cards marked drawn)

    Raises:
        GameStartError: Fewer than MIN_PLAYERS players.
        DeckExhausted: Not enough cards to deal every player a full hand.
    """
    if len(players) < MIN_PLAYERS:
        raise GameStartError(f"Need at least {MIN_PLAYERS} players to start")

    deck = build_game_deck(len(players), rng)
    state = GameState(phase=GamePhase.ROUND1_DEALING, round_state=RoundOneState())

    for idx, lobby_player in enumerate(players):
        hand = []
        for _ in range(HAND_SIZE):
            try:
                hand.append(PlayerCard(card=draw(deck)))
            except DeckExhausted:
                logger.error(f"Deck ran out dealing {len(players)} players ({len(deck)} cards)")
                raise
        state.players.append(PlayerState(
            id=lobby_player["id"],
            name=lobby_player.get("name", lobby_player["id"]),
            cards=hand,
            is_current_player=idx == 0,
        ))

    state.enter_phase(GamePhase.ROUND1_GUESSING, RoundOneState(current_player_index=0))
    logger.info(f"Dealt {HAND_SIZE} cards to {len(players)} players from a {len(deck)}-card deck")
    return state, deck


def correct_answer(hand: list[PlayerCard], card_index: int) -> str:
    """
    The winning guess for a hand position.

    Position 2 compares against the range of cards 0 and 1, so swapping
    those two cards never changes the answer.
    """
    card = hand[card_index].card

    if card_index == 0:
        return "red" if card.is_red() else "black"

    if card_index == 1:
        first = hand[0].card.value()
        value = card.value()
        if value > first:
            return "higher"
        if value < first:
            return "lower"
        return "same"

    if card_index == 2:
        values = (hand[0].card.value(), hand[1].card.value())
        low, high = min(values), max(values)
        value = card.value()
        if value in (low, high):
            return "same"
        if low < value < high:
            return "between"
        return "outside"

    return card.suit.value


def submit_guess(
    state: GameState,
    deck: list[Card],
    guess: Optional[str],
    card_index: Optional[int] = None,
    player_index: Optional[int] = None,
) -> Outcome:
    """
    Resolve the current player's guess for their current card.

    Args:
        state: Current game state (not mutated).
        deck: Current deck (not mutated; round 1 guesses never draw).
        guess: The guess word for the current position.
        card_index: Position the caller believes is current. A mismatch marks
            the request stale.
        player_index: Player the caller believes is current; same rule.

    Returns:
        Outcome; applied is False for stale or invalid requests.
    """
    if state.phase != GamePhase.ROUND1_GUESSING:
        logger.debug(f"Ignoring round 1 guess during {state.phase.value}")
        return Outcome.unchanged(state, deck)

    rs = state.round_state
    if player_index is not None and player_index != rs.current_player_index:
        logger.debug(f"Ignoring stale guess for player {player_index}, current is {rs.current_player_index}")
        return Outcome.unchanged(state, deck)

    player = state.players[rs.current_player_index]
    idx = player.current_card_index
    if card_index is not None and card_index != idx:
        logger.debug(f"Ignoring stale guess for card {card_index}, current is {idx}")
        return Outcome.unchanged(state, deck)

    if idx >= HAND_SIZE or guess not in ROUND1_ALLOWED_GUESSES[idx]:
        logger.debug(f"Ignoring invalid guess {guess!r} for card {idx}")
        return Outcome.unchanged(state, deck)

    new_state, new_deck = working_copy(state, deck)
    new_rs = new_state.round_state
    player = new_state.players[new_rs.current_player_index]

    is_correct = guess == correct_answer(player.cards, idx)
    player.cards[idx].revealed = True
    player.cards[idx].guessed_correctly = is_correct

    outcome = Outcome(state=new_state, deck=new_deck)
    if not is_correct:
        outcome.cues.append(DrinkCue(reason="round1_miss", player_ids=[player.id]))

    if idx < HAND_SIZE - 1:
        player.current_card_index = idx + 1
        return outcome

    # Hand finished, pass the turn
    player.current_card_index = HAND_SIZE
    next_index = (new_rs.current_player_index + 1) % len(new_state.players)
    player.is_current_player = False
    new_state.players[next_index].is_current_player = True

    if next_index == 0:
        new_state.enter_phase(GamePhase.ROUND2_GOODBADUGLY, RoundTwoState())
        logger.info("Round 1 complete, starting Good/Bad/Ugly")
    else:
        new_rs.current_player_index = next_index

    return outcome
