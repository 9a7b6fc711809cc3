from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .cards import Card


class Phase(str, Enum):
    PRE_FLOP = "PRE_FLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"


class TablePhase(str, Enum):
    WAITING = "WAITING"
    PLAYING = "PLAYING"


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    RAISE = "RAISE"
    ALL_IN = "ALL_IN"


class OutcomeKind(str, Enum):
    PHASE_ADVANCE = "PHASE_ADVANCE"
    HAND_COMPLETE = "HAND_COMPLETE"


@dataclass
class TableConfig:
    max_seats: int = 6
    sb: int = 5
    bb: int = 10
    buy_in: int = 1_000
    is_private: bool = False
    next_hand_delay_ms: int = 4_000


@dataclass
class Player:
    id: str
    name: str
    stack: int
    hole_cards: List[Card] = field(default_factory=list)
    folded: bool = False
    all_in: bool = False
    sitting_out: bool = False
    went_to_showdown: bool = False
    must_show: bool = False
    voluntary_show: bool = False
    revealed: List[bool] = field(default_factory=lambda: [False, False])

    def reset_for_hand(self) -> None:
        self.hole_cards.clear()
        self.folded = False
        self.all_in = False
        self.went_to_showdown = False
        self.must_show = False
        self.voluntary_show = False
        self.revealed = [False, False]

    @property
    def eligible(self) -> bool:
        return not self.sitting_out and self.stack > 0


@dataclass
class PotResult:
    amount: int
    eligible: List[int]
    winners: List[int]
    hand: Optional[str] = None


@dataclass
class HandResult:
    hand_id: str
    uncontested: bool
    pots: List[PotResult]
    payouts: Dict[int, int]

    def to_payload(self) -> Dict[str, object]:
        return {
            "hand_id": self.hand_id,
            "uncontested": self.uncontested,
            "pots": [
                {
                    "amount": pot.amount,
                    "eligible": list(pot.eligible),
                    "winners": list(pot.winners),
                    "hand": pot.hand,
                }
                for pot in self.pots
            ],
            "payouts": [{"seat": seat, "amount": amount} for seat, amount in sorted(self.payouts.items())],
        }


@dataclass
class ActionResult:
    events: List[Dict[str, object]] = field(default_factory=list)
    outcome: Optional[OutcomeKind] = None
    result: Optional[HandResult] = None

    @property
    def hand_complete(self) -> bool:
        return self.outcome == OutcomeKind.HAND_COMPLETE
