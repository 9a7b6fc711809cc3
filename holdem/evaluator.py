from __future__ import annotations

import itertools
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from .cards import Card

RANK_ORDER = "23456789TJQKA"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANK_ORDER, start=2)}

# Rank values run 2..14, so base 15 keeps every digit distinct.
RADIX = 15

HIGH_CARD = 1
PAIR = 2
TWO_PAIR = 3
THREE_OF_A_KIND = 4
STRAIGHT = 5
FLUSH = 6
FULL_HOUSE = 7
FOUR_OF_A_KIND = 8
STRAIGHT_FLUSH = 9
ROYAL_FLUSH = 10

CATEGORY_NAMES: Dict[int, str] = {
    HIGH_CARD: "High Card",
    PAIR: "Pair",
    TWO_PAIR: "Two Pair",
    THREE_OF_A_KIND: "Three of a Kind",
    STRAIGHT: "Straight",
    FLUSH: "Flush",
    FULL_HOUSE: "Full House",
    FOUR_OF_A_KIND: "Four of a Kind",
    STRAIGHT_FLUSH: "Straight Flush",
    ROYAL_FLUSH: "Royal Flush",
}


class HandValue(NamedTuple):
    category: int
    value: int
    name: str

    @property
    def key(self) -> tuple:
        return (self.category, self.value)


def evaluate(cards: Sequence[Card]) -> HandValue:
    """Rank the best five-card hand out of 5-7 cards. Higher keys are better.

    Every 5-card subset is scored and the best ``(category, value)`` kept, so the
    result does not depend on input order.
    """
    if not 5 <= len(cards) <= 7:
        raise ValueError(f"Expected 5 to 7 cards, got {len(cards)}")
    if len(set(cards)) != len(cards):
        raise ValueError("Duplicate cards in hand")

    best: Optional[HandValue] = None
    for combo in itertools.combinations(cards, 5):
        score = evaluate_five(combo)
        if best is None or score.key > best.key:
            best = score
    assert best is not None
    return best


def compare_hands(left: HandValue, right: HandValue) -> int:
    if left.key > right.key:
        return 1
    if left.key < right.key:
        return -1
    return 0


def evaluate_five(cards: Sequence[Card]) -> HandValue:
    ranks = sorted((RANK_VALUE[card.rank] for card in cards), reverse=True)
    is_flush = len({card.suit for card in cards}) == 1
    straight_high = _straight_high(ranks)

    counts: Dict[int, int] = {}
    for rank in ranks:
        counts[rank] = counts.get(rank, 0) + 1
    # Grouped by multiplicity first, then rank: quads/trips/pairs lead, kickers follow.
    grouped = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
    shape = [count for _, count in grouped]
    ordered = [rank for rank, _ in grouped]

    if straight_high and is_flush:
        if straight_high == RANK_VALUE["A"]:
            return _hand(ROYAL_FLUSH, [straight_high])
        return _hand(STRAIGHT_FLUSH, [straight_high])
    if shape[0] == 4:
        return _hand(FOUR_OF_A_KIND, ordered)
    if shape[:2] == [3, 2]:
        return _hand(FULL_HOUSE, ordered)
    if is_flush:
        return _hand(FLUSH, ranks)
    if straight_high:
        return _hand(STRAIGHT, [straight_high])
    if shape[0] == 3:
        return _hand(THREE_OF_A_KIND, ordered)
    if shape[:2] == [2, 2]:
        return _hand(TWO_PAIR, ordered)
    if shape[0] == 2:
        return _hand(PAIR, ordered)
    return _hand(HIGH_CARD, ranks)


def _hand(category: int, digits: Iterable[int]) -> HandValue:
    return HandValue(category, _encode(digits), CATEGORY_NAMES[category])


def _encode(digits: Iterable[int]) -> int:
    value = 0
    for digit in digits:
        value = value * RADIX + digit
    return value


def _straight_high(ranks: List[int]) -> Optional[int]:
    unique = sorted(set(ranks), reverse=True)
    if len(unique) != 5:
        return None
    if unique[0] - unique[4] == 4:
        return unique[0]
    if unique == [14, 5, 4, 3, 2]:  # wheel plays five-high
        return 5
    return None
