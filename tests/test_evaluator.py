import random

import pytest

from holdem.cards import Card, Deck, build_deck, parse_cards
from holdem.evaluator import (
    FLUSH,
    FOUR_OF_A_KIND,
    FULL_HOUSE,
    HIGH_CARD,
    PAIR,
    ROYAL_FLUSH,
    STRAIGHT,
    STRAIGHT_FLUSH,
    THREE_OF_A_KIND,
    TWO_PAIR,
    compare_hands,
    evaluate,
)


def score(labels):
    return evaluate(parse_cards(labels))


def test_evaluate_identifies_all_hand_categories():
    cases = [
        (ROYAL_FLUSH, ["As", "Ks", "Qs", "Js", "Ts"]),
        (STRAIGHT_FLUSH, ["9h", "8h", "7h", "6h", "5h"]),
        (FOUR_OF_A_KIND, ["As", "Ah", "Ad", "Ac", "Kd"]),
        (FULL_HOUSE, ["Qc", "Qd", "Qs", "9h", "9s"]),
        (FLUSH, ["Ah", "Jh", "9h", "6h", "2h"]),
        (STRAIGHT, ["9h", "8d", "7c", "6s", "5h"]),
        (THREE_OF_A_KIND, ["8h", "8d", "8s", "Qd", "Js"]),
        (TWO_PAIR, ["7h", "7d", "4s", "4c", "As"]),
        (PAIR, ["6h", "6s", "Qh", "8d", "4c"]),
        (HIGH_CARD, ["As", "Kd", "Jh", "9c", "4d"]),
    ]
    for expected, labels in cases:
        assert score(labels).category == expected, f"labels={labels}"


def test_royal_flush_beats_king_high_straight_flush():
    royal = score(["As", "Ks", "Qs", "Js", "Ts"])
    king_high = score(["Kh", "Qh", "Jh", "Th", "9h"])
    assert royal.name == "Royal Flush"
    assert compare_hands(royal, king_high) == 1


def test_quads_beat_full_house():
    quads = score(["2c", "2d", "2h", "2s", "5c"])
    boat = score(["Ac", "Ad", "Ah", "Kc", "Kd"])
    assert compare_hands(quads, boat) == 1


def test_wheel_is_lowest_straight_but_beats_trips():
    wheel = score(["Ac", "2d", "3h", "4s", "5c"])
    six_high = score(["6c", "5d", "4h", "3s", "2c"])
    trips = score(["Ac", "Ad", "Ah", "Kc", "Qd"])
    assert wheel.category == STRAIGHT
    assert compare_hands(wheel, six_high) == -1
    assert compare_hands(wheel, trips) == 1


def test_seven_card_wheel_picks_five_high():
    hand = score(["Ah", "2d", "3c", "4s", "5h", "9d", "Kd"])
    five_high = score(["5c", "4d", "3h", "2s", "Ac"])
    assert hand.key == five_high.key


def test_flush_compares_all_five_ranks():
    better = score(["Ah", "Jh", "9h", "6h", "3h"])
    worse = score(["Ad", "Jd", "9d", "6d", "2d"])
    assert compare_hands(better, worse) == 1


def test_kickers_break_equal_pairs():
    hand_a = score(["Ah", "Ad", "Kc", "Qs", "9h", "2d", "3c"])
    hand_b = score(["As", "Ac", "Qc", "Js", "8h", "2h", "3d"])
    assert compare_hands(hand_a, hand_b) == 1


def test_two_pair_picks_best_two_of_three_pairs():
    hand = score(["Kh", "Kd", "7c", "7s", "3h", "3d", "Ac"])
    assert hand.key == score(["Kh", "Kd", "7c", "7s", "Ac"]).key


def test_evaluation_is_order_independent():
    rng = random.Random(7)
    deck = build_deck(seed=99)
    for idx in range(0, 49, 7):
        cards = deck[idx : idx + 7]
        expected = evaluate(cards)
        for _ in range(5):
            shuffled = list(cards)
            rng.shuffle(shuffled)
            assert evaluate(shuffled) == expected


def test_evaluate_rejects_bad_card_counts_and_duplicates():
    with pytest.raises(ValueError, match="Expected 5 to 7 cards"):
        score(["As", "Kd", "Jh", "9c"])
    with pytest.raises(ValueError, match="Duplicate"):
        evaluate([Card("A", "s")] * 2 + parse_cards(["Kd", "Jh", "9c"]))


def test_card_validation_rejects_invalid_labels():
    with pytest.raises(ValueError, match="Invalid rank"):
        Card("1", "h")
    with pytest.raises(ValueError, match="Invalid suit"):
        Card("A", "x")
    with pytest.raises(ValueError, match="Invalid card label"):
        parse_cards(["10h"])


def test_seeded_deck_is_reproducible_and_complete():
    assert build_deck(seed=5) == build_deck(seed=5)
    assert len(set(build_deck(seed=5))) == 52


def test_deck_draws_from_end_and_runs_out():
    cards = parse_cards(["2c", "3d"])
    deck = Deck(cards)
    assert deck.draw() == cards[1]
    deck.burn()
    assert len(deck) == 0
    with pytest.raises(ValueError, match="Not enough cards"):
        deck.draw()
    with pytest.raises(ValueError, match="duplicate"):
        Deck(cards + cards)
