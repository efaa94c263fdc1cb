"""
Test suite for action handlers.

Tests that each action type reaches the right engine transition and that
payload fields are read the way clients send them.

Run with: pytest test_handlers.py -v
"""

import pytest

from game import (
    Card,
    GamePhase,
    GameState,
    PlayerCard,
    PlayerState,
    Rank,
    RoundOneState,
    RoundThreeState,
    RoundTwoState,
    Suit,
)
from handlers import HANDLERS, UnknownAction, dispatch


# =============================================================================
# Helpers
# =============================================================================

def round_one_state():
    cards = [
        (Suit.HEARTS, Rank.THREE),
        (Suit.CLUBS, Rank.NINE),
        (Suit.SPADES, Rank.FIVE),
        (Suit.DIAMONDS, Rank.KING),
    ]
    players = [
        PlayerState(
            id=pid,
            name=pid,
            cards=[PlayerCard(card=Card(s, r)) for s, r in cards],
            is_current_player=pid == "a",
        )
        for pid in ("a", "b")
    ]
    return GameState(phase=GamePhase.ROUND1_GUESSING, players=players, round_state=RoundOneState())


def round_two_state(top_rank=Rank.FIVE, round2_index=0):
    players = [
        PlayerState(id="a", name="A", cards=[PlayerCard(card=Card(Suit.CLUBS, Rank.FIVE), revealed=True)]),
        PlayerState(id="b", name="B"),
    ]
    state = GameState(
        phase=GamePhase.ROUND2_GOODBADUGLY,
        players=players,
        round_state=RoundTwoState(round2_index=round2_index),
    )
    deck = [Card(Suit.HEARTS, top_rank, id="0-hearts-top"), Card(Suit.HEARTS, Rank.TWO, id="0-hearts-2")]
    return state, deck


def round_three_state(table=None):
    return GameState(
        phase=GamePhase.ROUND3_BUSDRIVER,
        players=[PlayerState(id="a", name="A"), PlayerState(id="b", name="B")],
        round_state=RoundThreeState(bus_driver_id="a", cards=list(table or [])),
    )


# =============================================================================
# Dispatch
# =============================================================================

class TestDispatch:

    def test_every_action_type_registered(self):
        assert set(HANDLERS) == {
            "round1_guess",
            "round2_draw",
            "round2_give_drink",
            "round2_acknowledge",
            "round2_give_card",
            "round3_guess_suit",
            "round3_guess_up_down",
        }

    def test_unknown_type_raises(self):
        with pytest.raises(UnknownAction):
            dispatch({"type": "flip_table"}, round_one_state(), [])

    def test_missing_type_raises(self):
        with pytest.raises(UnknownAction):
            dispatch({}, round_one_state(), [])


# =============================================================================
# Round 1
# =============================================================================

class TestRoundOneHandlers:

    def test_guess(self):
        outcome = dispatch({"type": "round1_guess", "guess": "red"}, round_one_state(), [])
        assert outcome.applied
        assert outcome.state.players[0].current_card_index == 1

    def test_guess_with_matching_indices(self):
        action = {"type": "round1_guess", "guess": "red", "cardIndex": 0, "playerIndex": 0}
        assert dispatch(action, round_one_state(), []).applied

    def test_guess_with_string_index(self):
        action = {"type": "round1_guess", "guess": "red", "cardIndex": "0"}
        assert dispatch(action, round_one_state(), []).applied

    def test_stale_card_index(self):
        action = {"type": "round1_guess", "guess": "red", "cardIndex": 2}
        assert not dispatch(action, round_one_state(), []).applied

    def test_garbage_index_is_stale(self):
        action = {"type": "round1_guess", "guess": "red", "cardIndex": "first"}
        assert not dispatch(action, round_one_state(), []).applied


# =============================================================================
# Round 2
# =============================================================================

class TestRoundTwoHandlers:

    def test_draw(self):
        state, deck = round_two_state()
        outcome = dispatch({"type": "round2_draw"}, state, deck)
        assert outcome.applied
        assert outcome.state.round_state.card_drawn.rank == Rank.FIVE

    def test_give_drink(self):
        state, deck = round_two_state()
        drawn = dispatch({"type": "round2_draw"}, state, deck)
        outcome = dispatch(
            {"type": "round2_give_drink", "fromPlayerId": "a", "toPlayerId": "b"},
            drawn.state,
            drawn.deck,
        )
        assert outcome.applied
        assert outcome.cues[0].player_ids == ["b"]

    def test_acknowledge(self):
        state, deck = round_two_state(round2_index=1)
        drawn = dispatch({"type": "round2_draw"}, state, deck)
        outcome = dispatch({"type": "round2_acknowledge"}, drawn.state, drawn.deck)
        assert outcome.applied
        assert outcome.state.round_state.card_drawn is None

    def test_give_card(self):
        state, deck = round_two_state(round2_index=2)
        drawn = dispatch({"type": "round2_draw"}, state, deck)
        outcome = dispatch(
            {"type": "round2_give_card", "fromPlayerId": "a", "toPlayerId": "b"},
            drawn.state,
            drawn.deck,
        )
        assert outcome.applied
        assert len(outcome.state.get_player("b").cards) == 1

    def test_give_card_missing_recipient(self):
        state, deck = round_two_state(round2_index=2)
        drawn = dispatch({"type": "round2_draw"}, state, deck)
        outcome = dispatch({"type": "round2_give_card", "fromPlayerId": "a"}, drawn.state, drawn.deck)
        assert not outcome.applied


# =============================================================================
# Round 3
# =============================================================================

class TestRoundThreeHandlers:

    def test_guess_suit(self):
        deck = [Card(Suit.CLUBS, Rank.SIX, id="0-clubs-6")]
        outcome = dispatch({"type": "round3_guess_suit", "suit": "clubs"}, round_three_state(), deck)
        assert outcome.applied
        assert outcome.state.round_state.correct_guesses == 1

    def test_guess_up_down(self):
        deck = [Card(Suit.CLUBS, Rank.SIX, id="0-clubs-6")]
        state = round_three_state(table=[Card(Suit.HEARTS, Rank.TWO)])
        outcome = dispatch({"type": "round3_guess_up_down", "guess": "higher"}, state, deck)
        assert outcome.applied
        assert outcome.state.round_state.correct_guesses == 1
