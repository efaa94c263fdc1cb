"""
Deck construction, shuffling and draw tracking.

A game deck is a flat list of Card instances that never shrinks: drawing
flips one instance's drawn flag, and reshuffles flip flags back. With two
merged decks every (suit, rank) appears twice, so draws always target a
single instance, by synthetic id when the card carries one and otherwise the
first undrawn match in deck order.
"""

import logging
import random
from dataclasses import replace
from typing import Optional

from constants import num_decks_for
from game import Card, Rank, Suit

logger = logging.getLogger(__name__)


class DeckExhausted(Exception):
    """Raised when drawing from a deck with no undrawn cards."""
    pass


def shuffle_cards(cards: list[Card], rng: Optional[random.Random] = None) -> None:
    """
    Shuffle in place.

    random.shuffle is Fisher-Yates: it walks from the last index down to 1,
    swapping each position with a uniformly chosen index <= i.
    """
    (rng or random).shuffle(cards)


def build_shuffled_deck(deck_index: int = 0, rng: Optional[random.Random] = None) -> list[Card]:
    """
    Build one standard 52-card deck, all undrawn, shuffled.

    Args:
        deck_index: Which deck this is within a game (feeds the instance ids).
        rng: Optional random source for deterministic shuffles.
    """
    cards = [
        Card(suit, rank, id=f"{deck_index}-{suit.value}-{rank.value}")
        for suit in Suit
        for rank in Rank
    ]
    shuffle_cards(cards, rng)
    return cards


def build_game_deck(player_count: int, rng: Optional[random.Random] = None) -> list[Card]:
    """
    Build the deck for a game: one shuffled deck below five players, two
    independently shuffled decks concatenated otherwise.
    """
    deck: list[Card] = []
    for deck_index in range(num_decks_for(player_count)):
        deck.extend(build_shuffled_deck(deck_index, rng))
    return deck


def draw_first_available(deck: list[Card]) -> Card:
    """
    First undrawn card in deck order (not marked).

    Raises:
        DeckExhausted: Every card is drawn.
    """
    for card in deck:
        if not card.drawn:
            return card
    raise DeckExhausted("No cards left in deck")


def _find_instance(deck: list[Card], card: Card, drawn: bool) -> Optional[Card]:
    if card.id:
        for candidate in deck:
            if candidate.id == card.id:
                return candidate if candidate.drawn == drawn else None
    for candidate in deck:
        if candidate.drawn == drawn and candidate.suit == card.suit and candidate.rank == card.rank:
            return candidate
    return None


def mark_drawn(deck: list[Card], card: Card) -> Optional[Card]:
    """
    Flip drawn on exactly one instance of card.

    Returns:
        The deck instance that was flipped, or None if no undrawn instance
        matched.
    """
    instance = _find_instance(deck, card, drawn=False)
    if instance is not None:
        instance.drawn = True
    return instance


def draw(deck: list[Card]) -> Card:
    """
    Draw the first available card and mark it drawn.

    Returns:
        A detached copy of the drawn card (drawn flag cleared) for use in a
        hand or on the table.

    Raises:
        DeckExhausted: Every card is drawn.
    """
    card = draw_first_available(deck)
    mark_drawn(deck, card)
    return replace(card, drawn=False)


def undrawn_count(deck: list[Card]) -> int:
    return sum(1 for card in deck if not card.drawn)


def drawn_count(deck: list[Card]) -> int:
    return sum(1 for card in deck if card.drawn)


def reset_and_shuffle(deck: list[Card], rng: Optional[random.Random] = None) -> None:
    """Mark every card undrawn and reshuffle the whole deck in place."""
    for card in deck:
        card.drawn = False
    shuffle_cards(deck, rng)


def reshuffle_drawn_except(deck: list[Card], keep: list[Card], rng: Optional[random.Random] = None) -> int:
    """
    Return every drawn card to play except one instance per card in keep.

    Returned cards are shuffled and placed ahead of the cards still drawn,
    so the next draw comes from the fresh pool.

    Returns:
        How many instances were returned.
    """
    held = set()
    for card in keep:
        instance = _find_instance(deck, card, drawn=True)
        if instance is not None:
            held.add(id(instance))

    returned = 0
    for card in deck:
        if card.drawn and id(card) not in held:
            card.drawn = False
            returned += 1

    pool = [c for c in deck if not c.drawn]
    still_drawn = [c for c in deck if c.drawn]
    shuffle_cards(pool, rng)
    deck[:] = pool + still_drawn
    return returned


def deck_to_list(deck: list[Card]) -> list[dict]:
    """Serialize a deck for the lobby record."""
    return [card.to_dict() for card in deck]


def deck_from_list(data: list[dict]) -> list[Card]:
    return [Card.from_dict(d) for d in data]
