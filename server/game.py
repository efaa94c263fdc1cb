"""
Game model for Ride the Bus.

This module defines the cards, players and per-lobby game state shared by
the three round engines, plus the JSON codec used for the lobby record.

Ride the Bus Summary:
    - Round 1: each player is dealt 4 face-down cards and guesses them in
      order (red/black, higher/lower/same, between/outside/same, suit)
    - Round 2: cards are drawn one at a time, cycling Good/Bad/Ugly; players
      holding the drawn rank give drinks, take drinks, or give the card away
    - Round 3: the player left holding the most cards drives the bus, guessing
      a suit and then a streak of higher/lower/same calls up to 10

Phase state is a tagged union: GameState.round_state is a RoundOneState,
RoundTwoState or RoundThreeState depending on GameState.phase. The wire
format flattens it back into a single camelCase record.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from constants import GOOD_BAD_UGLY, get_card_value_for_rank, is_red_suit


class Suit(str, Enum):
    """Card suits for a standard deck."""

    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"


class Rank(str, Enum):
    """Card ranks, ace low."""

    ACE = "ace"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "jack"
    QUEEN = "queen"
    KING = "king"


class GamePhase(str, Enum):
    """
    Phases of a Ride the Bus game.

    Flow: ROUND1_DEALING -> ROUND1_GUESSING -> ROUND2_GOODBADUGLY -> ROUND3_BUSDRIVER
    There is no terminal phase; a finished bus-driver streak is observed by
    the caller (see round_three.is_complete).
    """

    ROUND1_DEALING = "round1_dealing"
    ROUND1_GUESSING = "round1_guessing"
    ROUND2_GOODBADUGLY = "round2_goodbadugly"
    ROUND3_BUSDRIVER = "round3_busdriver"


@dataclass
class Card:
    """
    A physical playing card.

    Attributes:
        suit: The card's suit.
        rank: The card's rank.
        drawn: Whether this instance has been drawn from the deck.
        id: Synthetic instance id ("<deck>-<suit>-<rank>"), unique even when
            two decks are merged and (suit, rank) pairs repeat.
    """

    suit: Suit
    rank: Rank
    drawn: bool = False
    id: str = ""

    def value(self) -> int:
        """Comparison value, ace=1 ... king=13."""
        return get_card_value_for_rank(self.rank.value)

    def is_red(self) -> bool:
        return is_red_suit(self.suit.value)

    def to_dict(self, include_drawn: bool = True) -> dict:
        """
        Convert card to dictionary for JSON serialization.

        Args:
            include_drawn: Deck entries carry the drawn flag; cards held in a
                hand or on the table do not.
        """
        data = {"suit": self.suit.value, "rank": self.rank.value}
        if include_drawn:
            data["drawn"] = self.drawn
        if self.id:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(
            suit=Suit(d["suit"]),
            rank=Rank(d["rank"]),
            drawn=bool(d.get("drawn", False)),
            id=d.get("id", ""),
        )

    def __str__(self) -> str:
        return f"{self.rank.value} of {self.suit.value}"


@dataclass
class PlayerCard:
    """A card in a player's hand, face-down until its guess resolves."""

    card: Card
    revealed: bool = False
    guessed_correctly: Optional[bool] = None

    def to_dict(self) -> dict:
        data = {"card": self.card.to_dict(include_drawn=False), "revealed": self.revealed}
        if self.guessed_correctly is not None:
            data["guessedCorrectly"] = self.guessed_correctly
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "PlayerCard":
        return cls(
            card=Card.from_dict(d["card"]),
            revealed=bool(d.get("revealed", False)),
            guessed_correctly=d.get("guessedCorrectly"),
        )


@dataclass
class PlayerState:
    """
    A player in a Ride the Bus game.

    Attributes:
        id: Unique identifier (bots carry the "bot-" prefix).
        name: Display name.
        cards: Hand for rounds 1 and 2.
        current_card_index: Next hand position to guess in round 1 (4 = done).
        is_current_player: Whose turn it is in round 1.
        drink_count: Carried for clients; the engine never changes it.
    """

    id: str
    name: str
    cards: list[PlayerCard] = field(default_factory=list)
    current_card_index: int = 0
    is_current_player: bool = False
    drink_count: int = 0

    def count_rank(self, rank: Rank) -> int:
        """How many cards in hand share the given rank."""
        return sum(1 for pc in self.cards if pc.card.rank == rank)

    def first_index_of_rank(self, rank: Rank) -> Optional[int]:
        for idx, pc in enumerate(self.cards):
            if pc.card.rank == rank:
                return idx
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cards": [pc.to_dict() for pc in self.cards],
            "currentCardIndex": self.current_card_index,
            "isCurrentPlayer": self.is_current_player,
            "drinkCount": self.drink_count,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PlayerState":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            cards=[PlayerCard.from_dict(pc) for pc in d.get("cards", [])],
            current_card_index=int(d.get("currentCardIndex", 0)),
            is_current_player=bool(d.get("isCurrentPlayer", False)),
            drink_count=int(d.get("drinkCount", 0)),
        )


# =============================================================================
# Phase state variants
# =============================================================================

@dataclass
class RoundOneState:
    """Turn pointer for dealing and guessing."""

    current_player_index: int = 0


@dataclass
class RoundTwoState:
    """
    Good/Bad/Ugly progress.

    Attributes:
        round2_index: Draws so far; incremented at draw time, so the displayed
            card's action is GOOD_BAD_UGLY[(round2_index - 1) % 3].
        card_drawn: The displayed card, or None between draws.
        original_matches: Per player, how many hand cards matched the drawn
            rank at draw time. Fixed for the whole resolution.
        given_counts: Per player, how many obligations have been resolved.
    """

    round2_index: int = 0
    card_drawn: Optional[Card] = None
    original_matches: dict[str, int] = field(default_factory=dict)
    given_counts: dict[str, int] = field(default_factory=dict)

    @property
    def current_action(self) -> Optional[str]:
        """Action pinned to the displayed card, or None if nothing is displayed."""
        if self.card_drawn is None:
            return None
        return GOOD_BAD_UGLY[(self.round2_index - 1) % 3]

    @property
    def next_action(self) -> str:
        """Action the next draw will carry."""
        return GOOD_BAD_UGLY[self.round2_index % 3]

    def remaining_quota(self, player_id: str) -> int:
        return self.original_matches.get(player_id, 0) - self.given_counts.get(player_id, 0)

    def quotas_exhausted(self) -> bool:
        return all(self.remaining_quota(pid) <= 0 for pid in self.original_matches)


@dataclass
class RoundThreeState:
    """
    Bus driver progress.

    Attributes:
        bus_driver_id: The player riding the bus.
        partner_index: Monotonic counter; the partner is
            others[partner_index % len(others)] at read time.
        cards: Table cards, most recent last.
        correct_guesses: Current streak.
    """

    bus_driver_id: Optional[str] = None
    partner_index: int = 0
    cards: list[Card] = field(default_factory=list)
    correct_guesses: int = 0


RoundState = Union[RoundOneState, RoundTwoState, RoundThreeState]

_ROUND_STATE_FOR_PHASE = {
    GamePhase.ROUND1_DEALING: RoundOneState,
    GamePhase.ROUND1_GUESSING: RoundOneState,
    GamePhase.ROUND2_GOODBADUGLY: RoundTwoState,
    GamePhase.ROUND3_BUSDRIVER: RoundThreeState,
}


@dataclass
class GameState:
    """
    Per-lobby game state.

    Attributes:
        phase: Current phase.
        players: Players in turn (join) order.
        round_state: Phase-specific fields; its type always matches phase.
    """

    phase: GamePhase
    players: list[PlayerState] = field(default_factory=list)
    round_state: RoundState = field(default_factory=RoundOneState)

    def __post_init__(self) -> None:
        expected = _ROUND_STATE_FOR_PHASE[self.phase]
        if not isinstance(self.round_state, expected):
            raise ValueError(
                f"{self.phase.value} needs {expected.__name__}, got {type(self.round_state).__name__}"
            )

    def enter_phase(self, phase: GamePhase, round_state: RoundState) -> None:
        """Switch phase and its state variant together."""
        expected = _ROUND_STATE_FOR_PHASE[phase]
        if not isinstance(round_state, expected):
            raise ValueError(f"{phase.value} needs {expected.__name__}")
        self.phase = phase
        self.round_state = round_state

    def get_player(self, player_id: str) -> Optional[PlayerState]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def current_player(self) -> Optional[PlayerState]:
        """Round 1 current player, or None outside round 1."""
        if not isinstance(self.round_state, RoundOneState) or not self.players:
            return None
        return self.players[self.round_state.current_player_index]

    def to_dict(self) -> dict:
        """Flatten to the lobby record's camelCase shape."""
        data = {
            "phase": self.phase.value,
            "players": [p.to_dict() for p in self.players],
            "currentPlayerIndex": 0,
            "round2Index": 0,
            "round2CardDrawn": None,
            "round2OriginalMatches": {},
            "round2GivenCounts": {},
            "busDriverId": None,
            "busDriverPartnerIndex": 0,
            "busDriverCards": [],
            "busDriverCorrectGuesses": 0,
        }
        rs = self.round_state
        if isinstance(rs, RoundOneState):
            data["currentPlayerIndex"] = rs.current_player_index
        elif isinstance(rs, RoundTwoState):
            data["round2Index"] = rs.round2_index
            data["round2CardDrawn"] = rs.card_drawn.to_dict(include_drawn=False) if rs.card_drawn else None
            data["round2OriginalMatches"] = dict(rs.original_matches)
            data["round2GivenCounts"] = dict(rs.given_counts)
        elif isinstance(rs, RoundThreeState):
            data["busDriverId"] = rs.bus_driver_id
            data["busDriverPartnerIndex"] = rs.partner_index
            data["busDriverCards"] = [c.to_dict(include_drawn=False) for c in rs.cards]
            data["busDriverCorrectGuesses"] = rs.correct_guesses
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "GameState":
        """
        Build state from a lobby record.

        Raises:
            ValueError: Unknown phase, suit or rank, or a Round 1 turn
                index that names no player.
            KeyError: Missing required fields.
        """
        phase = GamePhase(d["phase"])
        players = [PlayerState.from_dict(p) for p in d.get("players", [])]

        variant = _ROUND_STATE_FOR_PHASE[phase]
        if variant is RoundOneState:
            current = int(d.get("currentPlayerIndex", 0))
            if current not in range(len(players)):
                raise ValueError(f"currentPlayerIndex {current} out of range for {len(players)} players")
            round_state = RoundOneState(current_player_index=current)
        elif variant is RoundTwoState:
            drawn = d.get("round2CardDrawn")
            round_state = RoundTwoState(
                round2_index=int(d.get("round2Index", 0)),
                card_drawn=Card.from_dict(drawn) if drawn else None,
                original_matches={k: int(v) for k, v in (d.get("round2OriginalMatches") or {}).items()},
                given_counts={k: int(v) for k, v in (d.get("round2GivenCounts") or {}).items()},
            )
        else:
            round_state = RoundThreeState(
                bus_driver_id=d.get("busDriverId"),
                partner_index=int(d.get("busDriverPartnerIndex", 0)),
                cards=[Card.from_dict(c) for c in d.get("busDriverCards", [])],
                correct_guesses=int(d.get("busDriverCorrectGuesses", 0)),
            )
        return cls(phase=phase, players=players, round_state=round_state)


# =============================================================================
# Transition results
# =============================================================================

@dataclass
class DrinkCue:
    """
    Transient "drink!" prompt. Never persisted; broadcast alongside a state.

    Attributes:
        reason: What triggered it (round1_miss, good_give, bad_match,
            bus_driver_miss, bus_driver_give).
        player_ids: Who drinks. Empty when the giver picks recipients.
        from_player_id: Who hands the drinks out.
        drinks: How many drinks to hand out, when the giver chooses.
    """

    reason: str
    player_ids: list[str]
    from_player_id: Optional[str] = None
    drinks: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"reason": self.reason, "playerIds": list(self.player_ids)}
        if self.from_player_id:
            data["fromPlayerId"] = self.from_player_id
        if self.drinks:
            data["drinks"] = self.drinks
        return data


@dataclass
class Outcome:
    """
    Result of one engine transition.

    Engines never mutate their inputs. When applied is False the input
    objects are echoed back unchanged (stale or invalid request).
    """

    state: GameState
    deck: list[Card]
    applied: bool = True
    cues: list[DrinkCue] = field(default_factory=list)
    reshuffled: bool = False

    @classmethod
    def unchanged(cls, state: GameState, deck: list[Card]) -> "Outcome":
        return cls(state=state, deck=deck, applied=False)


def working_copy(state: GameState, deck: list[Card]) -> tuple[GameState, list[Card]]:
    """Deep copies an engine may mutate freely."""
    return copy.deepcopy(state), copy.deepcopy(deck)
