"""
Rule constants for Ride the Bus.

This module is the single source of truth for card values and the fixed
vocabularies used by each round. Tunable numbers come from config.py.

Card values (used for every higher/lower/between comparison):
    - Ace: 1
    - 2-10: Face value
    - Jack: 11, Queen: 12, King: 13
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

CARD_VALUES: dict[str, int] = {
    "ace": 1,
    "2": 2,
    "3": 3,
    "4": 4,
    "5": 5,
    "6": 6,
    "7": 7,
    "8": 8,
    "9": 9,
    "10": 10,
    "jack": 11,
    "queen": 12,
    "king": 13,
}

RED_SUITS = frozenset({"hearts", "diamonds"})


# =============================================================================
# Round Vocabularies
# =============================================================================

# Round 1: guess type per hand position
ROUND1_GUESS_TYPES = (
    "red_or_black",
    "higher_or_lower",
    "between_or_outside",
    "suit",
)

ROUND1_ALLOWED_GUESSES: dict[int, frozenset] = {
    0: frozenset({"red", "black"}),
    1: frozenset({"higher", "lower", "same"}),
    2: frozenset({"between", "outside", "same"}),
    3: frozenset({"hearts", "diamonds", "clubs", "spades"}),
}

# Round 2: action cycle, indexed by round2Index mod 3
GOOD_BAD_UGLY = ("good", "bad", "ugly")

# Round 3
UP_DOWN_GUESSES = frozenset({"higher", "lower", "same"})

# Drinks the bus driver hands out after a right suit call
SUIT_CALL_DRINKS = 2


# =============================================================================
# Game Constants
# =============================================================================

HAND_SIZE = len(ROUND1_GUESS_TYPES)
TWO_DECK_PLAYER_COUNT = config.game_defaults.two_deck_player_count
MIN_PLAYERS = config.game_defaults.min_players
BUS_DRIVER_TARGET = config.game_defaults.bus_driver_target
BOT_ID_PREFIX = config.game_defaults.bot_id_prefix


# =============================================================================
# Helper Functions
# =============================================================================

def get_card_value_for_rank(rank_str: str) -> int:
    """
    Get the comparison value for a rank string ('ace', '2', ..., 'king').

    Raises:
        KeyError: For an unknown rank.
    """
    return CARD_VALUES[rank_str]


def is_red_suit(suit_str: str) -> bool:
    """Hearts and diamonds are red."""
    return suit_str in RED_SUITS


def num_decks_for(player_count: int) -> int:
    """One deck below the two-deck threshold, two from it up."""
    return 2 if player_count >= TWO_DECK_PLAYER_COUNT else 1
