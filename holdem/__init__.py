"""In-memory Texas Hold'em engine: cards, evaluation, side pots, hands and tables."""

from .cards import Card, Deck, RANKS, SUITS, build_deck, parse_cards
from .errors import CapacityError, PokerError, StateError, ValidationError
from .evaluator import HandValue, compare_hands, evaluate
from .game import GameEngine, HandState
from .models import ActionResult, ActionType, OutcomeKind, Phase, Player, TableConfig, TablePhase
from .pots import Pot, build_side_pots
from .tables import DeferredStart, Table, TableManager

__all__ = [
    "Card",
    "Deck",
    "RANKS",
    "SUITS",
    "build_deck",
    "parse_cards",
    "CapacityError",
    "PokerError",
    "StateError",
    "ValidationError",
    "HandValue",
    "compare_hands",
    "evaluate",
    "GameEngine",
    "HandState",
    "ActionResult",
    "ActionType",
    "OutcomeKind",
    "Phase",
    "Player",
    "TableConfig",
    "TablePhase",
    "Pot",
    "build_side_pots",
    "DeferredStart",
    "Table",
    "TableManager",
]
