"""
Test suite for Round 1: dealing and the four sequential guesses.

Run with: pytest test_round_one.py -v
"""

import copy
import random

import pytest

from deck import drawn_count
from game import (
    Card,
    GamePhase,
    GameState,
    PlayerCard,
    PlayerState,
    Rank,
    RoundOneState,
    Suit,
)
from round_one import GameStartError, correct_answer, deal_game, submit_guess


# =============================================================================
# Helpers
# =============================================================================

def hand(*cards):
    return [PlayerCard(card=Card(suit, rank)) for suit, rank in cards]


def make_state(hands, current=0):
    players = [
        PlayerState(id=f"p{i}", name=f"Player {i}", cards=h, is_current_player=i == current)
        for i, h in enumerate(hands)
    ]
    return GameState(
        phase=GamePhase.ROUND1_GUESSING,
        players=players,
        round_state=RoundOneState(current_player_index=current),
    )


def winning_guesses(state):
    """Play every hand perfectly, yielding (state, outcome) after each guess."""
    deck = []
    while state.phase == GamePhase.ROUND1_GUESSING:
        player = state.players[state.round_state.current_player_index]
        idx = player.current_card_index
        outcome = submit_guess(state, deck, correct_answer(player.cards, idx))
        assert outcome.applied
        state, deck = outcome.state, outcome.deck
        yield state, outcome


LOW_HIGH = hand(
    (Suit.HEARTS, Rank.THREE),
    (Suit.CLUBS, Rank.NINE),
    (Suit.SPADES, Rank.FIVE),
    (Suit.DIAMONDS, Rank.KING),
)


# =============================================================================
# Dealing
# =============================================================================

class TestDealGame:

    def test_deals_four_cards_each(self):
        state, deck = deal_game([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}], random.Random(1))
        assert state.phase == GamePhase.ROUND1_GUESSING
        assert [len(p.cards) for p in state.players] == [4, 4]
        assert drawn_count(deck) == 8
        assert state.players[0].is_current_player
        assert not state.players[1].is_current_player
        assert state.round_state.current_player_index == 0

    def test_dealt_cards_are_face_down(self):
        state, _ = deal_game([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}], random.Random(2))
        for player in state.players:
            assert all(not pc.revealed for pc in player.cards)
            assert all(pc.guessed_correctly is None for pc in player.cards)

    def test_dealt_cards_are_unique_instances(self):
        players = [{"id": f"p{i}", "name": f"P{i}"} for i in range(6)]
        state, deck = deal_game(players, random.Random(3))
        assert len(deck) == 104
        ids = [pc.card.id for p in state.players for pc in p.cards]
        assert len(set(ids)) == 24

    def test_too_few_players(self):
        with pytest.raises(GameStartError):
            deal_game([{"id": "solo", "name": "Solo"}])

    def test_name_defaults_to_id(self):
        state, _ = deal_game([{"id": "a"}, {"id": "b"}], random.Random(4))
        assert state.players[0].name == "a"


# =============================================================================
# Guess rules
# =============================================================================

class TestCorrectAnswer:

    def test_red_or_black(self):
        assert correct_answer(hand((Suit.HEARTS, Rank.ACE)), 0) == "red"
        assert correct_answer(hand((Suit.DIAMONDS, Rank.ACE)), 0) == "red"
        assert correct_answer(hand((Suit.CLUBS, Rank.ACE)), 0) == "black"
        assert correct_answer(hand((Suit.SPADES, Rank.ACE)), 0) == "black"

    @pytest.mark.parametrize("second,expected", [
        (Rank.NINE, "higher"),
        (Rank.TWO, "lower"),
        (Rank.FIVE, "same"),
    ])
    def test_higher_lower_same(self, second, expected):
        h = hand((Suit.HEARTS, Rank.FIVE), (Suit.CLUBS, second))
        assert correct_answer(h, 1) == expected

    def test_ace_is_low(self):
        h = hand((Suit.HEARTS, Rank.TWO), (Suit.CLUBS, Rank.ACE))
        assert correct_answer(h, 1) == "lower"

    @pytest.mark.parametrize("third,expected", [
        (Rank.SIX, "between"),
        (Rank.TWO, "outside"),
        (Rank.KING, "outside"),
        (Rank.THREE, "same"),
        (Rank.NINE, "same"),
    ])
    def test_between_outside_same(self, third, expected):
        h = hand((Suit.HEARTS, Rank.THREE), (Suit.CLUBS, Rank.NINE), (Suit.SPADES, third))
        assert correct_answer(h, 2) == expected

    @pytest.mark.parametrize("third", list(Rank))
    def test_between_outside_symmetric(self, third):
        forward = hand((Suit.HEARTS, Rank.FOUR), (Suit.CLUBS, Rank.JACK), (Suit.SPADES, third))
        swapped = hand((Suit.CLUBS, Rank.JACK), (Suit.HEARTS, Rank.FOUR), (Suit.SPADES, third))
        assert correct_answer(forward, 2) == correct_answer(swapped, 2)

    def test_equal_bounds(self):
        h = hand((Suit.HEARTS, Rank.SEVEN), (Suit.CLUBS, Rank.SEVEN), (Suit.SPADES, Rank.SEVEN))
        assert correct_answer(h, 2) == "same"
        h = hand((Suit.HEARTS, Rank.SEVEN), (Suit.CLUBS, Rank.SEVEN), (Suit.SPADES, Rank.EIGHT))
        assert correct_answer(h, 2) == "outside"

    def test_suit(self):
        h = hand((Suit.HEARTS, Rank.ACE), (Suit.HEARTS, Rank.ACE), (Suit.HEARTS, Rank.ACE), (Suit.CLUBS, Rank.TEN))
        assert correct_answer(h, 3) == "clubs"


# =============================================================================
# Submitting guesses
# =============================================================================

class TestSubmitGuess:

    def test_correct_guess_reveals_and_advances(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        outcome = submit_guess(state, [], "red")

        assert outcome.applied
        assert outcome.cues == []
        card = outcome.state.players[0].cards[0]
        assert card.revealed and card.guessed_correctly is True
        assert outcome.state.players[0].current_card_index == 1

    def test_wrong_guess_cues_a_drink(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        outcome = submit_guess(state, [], "black")

        assert outcome.applied
        assert outcome.state.players[0].cards[0].guessed_correctly is False
        assert len(outcome.cues) == 1
        assert outcome.cues[0].reason == "round1_miss"
        assert outcome.cues[0].player_ids == ["p0"]

    def test_input_state_not_mutated(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        before = state.to_dict()
        submit_guess(state, [], "red")
        assert state.to_dict() == before

    def test_guess_word_must_match_position(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        outcome = submit_guess(state, [], "higher")
        assert not outcome.applied
        assert outcome.state is state

    def test_stale_card_index_is_ignored(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        outcome = submit_guess(state, [], "higher", card_index=1)
        assert not outcome.applied

    def test_stale_player_index_is_ignored(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        outcome = submit_guess(state, [], "red", card_index=0, player_index=1)
        assert not outcome.applied

    def test_wrong_phase_is_ignored(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        state.phase = GamePhase.ROUND1_DEALING
        assert not submit_guess(state, [], "red").applied

    def test_turn_passes_after_fourth_card(self):
        state = make_state([LOW_HIGH, copy.deepcopy(LOW_HIGH)])
        deck = []
        for guess in ("red", "higher", "between", "diamonds"):
            outcome = submit_guess(state, deck, guess)
            state, deck = outcome.state, outcome.deck

        assert state.phase == GamePhase.ROUND1_GUESSING
        assert state.round_state.current_player_index == 1
        assert state.players[0].current_card_index == 4
        assert not state.players[0].is_current_player
        assert state.players[1].is_current_player

    def test_all_players_done_moves_to_round_two(self):
        state = make_state([copy.deepcopy(LOW_HIGH) for _ in range(3)])
        steps = list(winning_guesses(state))

        assert len(steps) == 12
        final = steps[-1][0]
        assert final.phase == GamePhase.ROUND2_GOODBADUGLY
        assert final.round_state.round2_index == 0
        assert final.round_state.card_drawn is None
        assert final.players[0].is_current_player

    def test_round_two_wire_state_resets_turn_index(self):
        state = make_state([copy.deepcopy(LOW_HIGH) for _ in range(2)])
        final = list(winning_guesses(state))[-1][0]
        assert final.to_dict()["currentPlayerIndex"] == 0


# =============================================================================
# Full round
# =============================================================================

class TestRoundOneScenario:

    def test_two_players_all_correct(self):
        """One deck, two players, every guess right."""
        state, deck = deal_game([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}], random.Random(99))
        cues = []
        while state.phase == GamePhase.ROUND1_GUESSING:
            player = state.players[state.round_state.current_player_index]
            guess = correct_answer(player.cards, player.current_card_index)
            outcome = submit_guess(state, deck, guess)
            state, deck = outcome.state, outcome.deck
            cues.extend(outcome.cues)

        assert state.phase == GamePhase.ROUND2_GOODBADUGLY
        assert cues == []
        revealed = [pc for p in state.players for pc in p.cards]
        assert len(revealed) == 8
        assert all(pc.revealed and pc.guessed_correctly for pc in revealed)
        assert drawn_count(deck) == 8
