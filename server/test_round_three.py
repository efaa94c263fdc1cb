"""
Test suite for Round 3: the bus driver.

Run with: pytest test_round_three.py -v
"""

import random

from constants import BUS_DRIVER_TARGET
from deck import draw, undrawn_count
from game import Card, GamePhase, GameState, PlayerState, Rank, RoundThreeState, Suit
from round_three import guess_suit, guess_up_down_same, is_complete, partner_of


# =============================================================================
# Helpers
# =============================================================================

def make_state(table=None, correct=0, partner_index=0, players=("d", "p1", "p2")):
    return GameState(
        phase=GamePhase.ROUND3_BUSDRIVER,
        players=[PlayerState(id=pid, name=pid.upper()) for pid in players],
        round_state=RoundThreeState(
            bus_driver_id=players[0],
            partner_index=partner_index,
            cards=list(table or []),
            correct_guesses=correct,
        ),
    )


def stacked_deck(*cards):
    return [Card(suit, rank, id=f"0-{suit.value}-{rank.value}") for suit, rank in cards]


# =============================================================================
# Suit guess
# =============================================================================

class TestGuessSuit:

    def test_correct_suit_starts_streak_at_one(self):
        outcome = guess_suit(make_state(), stacked_deck((Suit.HEARTS, Rank.SEVEN)), "hearts")
        rs = outcome.state.round_state
        assert outcome.applied
        assert [c.rank for c in rs.cards] == [Rank.SEVEN]
        assert rs.correct_guesses == 1
        assert undrawn_count(outcome.deck) == 0

        cue = outcome.cues[0]
        assert cue.reason == "bus_driver_give"
        assert cue.from_player_id == "d"
        assert cue.player_ids == []
        assert cue.to_dict() == {"reason": "bus_driver_give", "playerIds": [], "fromPlayerId": "d", "drinks": 2}

    def test_wrong_suit_still_starts_table(self):
        outcome = guess_suit(make_state(), stacked_deck((Suit.HEARTS, Rank.SEVEN)), "spades")
        rs = outcome.state.round_state
        assert len(rs.cards) == 1
        assert rs.correct_guesses == 0
        assert outcome.cues[0].reason == "bus_driver_miss"
        assert outcome.cues[0].player_ids == ["d"]

    def test_only_on_empty_table(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.TWO)])
        assert not guess_suit(state, stacked_deck((Suit.HEARTS, Rank.SEVEN)), "hearts").applied

    def test_invalid_suit(self):
        assert not guess_suit(make_state(), stacked_deck((Suit.HEARTS, Rank.SEVEN)), "stars").applied

    def test_empty_deck_is_a_no_op(self):
        deck = [Card(Suit.HEARTS, Rank.SEVEN, drawn=True)]
        assert not guess_suit(make_state(), deck, "hearts").applied


# =============================================================================
# Higher / lower / same
# =============================================================================

class TestGuessUpDownSame:

    def test_correct_extends_streak(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=1)
        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.NINE)), "higher")
        rs = outcome.state.round_state
        assert rs.correct_guesses == 2
        assert [c.rank for c in rs.cards] == [Rank.FIVE, Rank.NINE]
        assert outcome.cues == []

    def test_same_is_strict_equality(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=3)
        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.FIVE)), "same")
        assert outcome.state.round_state.correct_guesses == 4

        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.FIVE)), "higher")
        assert outcome.state.round_state.correct_guesses == 0

    def test_wrong_resets_and_rotates_partner(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=4)
        assert partner_of(state).id == "p1"

        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.TWO)), "higher")
        rs = outcome.state.round_state
        assert rs.correct_guesses == 0
        assert rs.partner_index == 1
        assert len(rs.cards) == 2
        assert outcome.cues[0].reason == "bus_driver_miss"
        assert outcome.cues[0].player_ids == ["d", "p1"]
        assert partner_of(outcome.state).id == "p2"

    def test_partner_wraps(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], partner_index=5)
        assert partner_of(state).id == "p2"

    def test_needs_a_table_card(self):
        assert not guess_up_down_same(make_state(), stacked_deck((Suit.HEARTS, Rank.TWO)), "higher").applied

    def test_invalid_guess(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)])
        assert not guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.TWO)), "sideways").applied

    def test_complete_ride_ignores_guesses(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=BUS_DRIVER_TARGET)
        assert is_complete(state)
        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.NINE)), "higher")
        assert not outcome.applied
        assert outcome.state.phase == GamePhase.ROUND3_BUSDRIVER

    def test_reaching_target_completes(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=BUS_DRIVER_TARGET - 1)
        outcome = guess_up_down_same(state, stacked_deck((Suit.HEARTS, Rank.NINE)), "higher")
        assert is_complete(outcome.state)

    def test_target_reached_after_a_reset(self):
        state = make_state(table=[Card(Suit.CLUBS, Rank.FIVE)], correct=0)
        deck = stacked_deck((Suit.HEARTS, Rank.EIGHT), (Suit.HEARTS, Rank.JACK), (Suit.HEARTS, Rank.THREE))

        outcome = guess_up_down_same(state, deck, "higher")
        outcome = guess_up_down_same(outcome.state, outcome.deck, "higher")
        assert outcome.state.round_state.correct_guesses == 2

        outcome = guess_up_down_same(outcome.state, outcome.deck, "higher")
        rs = outcome.state.round_state
        assert rs.correct_guesses == 0
        assert rs.partner_index == 1
        assert not is_complete(outcome.state)

        state = outcome.state
        for _ in range(BUS_DRIVER_TARGET):
            last = state.round_state.cards[-1]
            # Alternate around a fixed card so every call is right
            if last.rank == Rank.TWO:
                deck = stacked_deck((Suit.SPADES, Rank.KING))
                guess = "higher"
            else:
                deck = stacked_deck((Suit.SPADES, Rank.TWO))
                guess = "lower"
            assert not is_complete(state)
            state = guess_up_down_same(state, deck, guess).state

        assert state.round_state.correct_guesses == BUS_DRIVER_TARGET
        assert state.round_state.partner_index == 1
        assert is_complete(state)


# =============================================================================
# Reshuffle on exhaustion
# =============================================================================

class TestReshuffle:

    def test_single_table_card_with_empty_pool(self):
        """Table [A], nothing undrawn: the A stays, everything else returns."""
        deck = stacked_deck(*[(s, r) for s in Suit for r in Rank])
        ace = None
        while undrawn_count(deck):
            card = draw(deck)
            if card.suit == Suit.SPADES and card.rank == Rank.ACE:
                ace = card
        state = make_state(table=[ace], correct=1)

        outcome = guess_up_down_same(state, deck, "higher", random.Random(1))

        assert outcome.applied
        assert outcome.reshuffled
        rs = outcome.state.round_state
        assert [c.id for c in rs.cards] == [ace.id]
        assert rs.correct_guesses == 1
        assert undrawn_count(outcome.deck) == 51
        assert [c.id for c in outcome.deck if c.drawn] == [ace.id]

    def test_keeps_only_last_table_card(self):
        deck = stacked_deck((Suit.HEARTS, Rank.TWO), (Suit.CLUBS, Rank.FIVE), (Suit.SPADES, Rank.NINE))
        table = [draw(deck), draw(deck), draw(deck)]
        state = make_state(table=table, correct=2)

        outcome = guess_up_down_same(state, deck, "lower", random.Random(2))

        rs = outcome.state.round_state
        assert outcome.reshuffled
        assert [c.rank for c in rs.cards] == [Rank.NINE]
        assert rs.correct_guesses == 2
        assert undrawn_count(outcome.deck) == 2

    def test_nothing_to_return(self):
        deck = stacked_deck((Suit.HEARTS, Rank.TWO))
        table = [draw(deck)]
        state = make_state(table=table)
        outcome = guess_up_down_same(state, deck, "higher")
        assert not outcome.applied

    def test_guess_after_reshuffle_draws_fresh_card(self):
        deck = stacked_deck((Suit.HEARTS, Rank.TWO), (Suit.CLUBS, Rank.KING))
        table = [draw(deck), draw(deck)]
        state = make_state(table=table)

        reshuffled = guess_up_down_same(state, deck, "lower", random.Random(3))
        retry = guess_up_down_same(reshuffled.state, reshuffled.deck, "lower")

        assert retry.applied
        rs = retry.state.round_state
        assert [c.rank for c in rs.cards] == [Rank.KING, Rank.TWO]
        assert rs.correct_guesses == 1
