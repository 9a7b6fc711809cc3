from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

RANKS = "AKQJT98765432"
SUITS = "hdcs"


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"


def build_deck(seed: Optional[int] = None) -> List[Card]:
    rng = random.Random(seed)
    deck = [Card(rank, suit) for rank in RANKS[::-1] for suit in SUITS]
    rng.shuffle(deck)
    return deck


class Deck:
    """Shuffled card stack; cards leave from the end of the list."""

    def __init__(self, cards: Sequence[Card]) -> None:
        if len(set(cards)) != len(cards):
            raise ValueError("Deck contains duplicate cards")
        self.cards: List[Card] = list(cards)

    def __len__(self) -> int:
        return len(self.cards)

    def draw(self) -> Card:
        if not self.cards:
            raise ValueError("Not enough cards left in deck")
        return self.cards.pop()

    def deal(self, count: int) -> List[Card]:
        if len(self.cards) < count:
            raise ValueError("Not enough cards left in deck")
        return [self.cards.pop() for _ in range(count)]

    def burn(self) -> None:
        self.draw()


def cards_to_labels(cards: Sequence[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(label[0], label[1])


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
