from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from holdem.cards import build_deck, parse_cards
from holdem.game import GameEngine, HandState
from holdem.models import ActionType, Player, TableConfig


def create_engine(
    *,
    seats: int = 3,
    stack: int = 1_000,
    sb: int = 10,
    bb: int = 20,
    stacks: Optional[Sequence[int]] = None,
) -> GameEngine:
    """Instantiate an engine with every seat filled (``stacks`` overrides per seat)."""
    engine = GameEngine(TableConfig(max_seats=seats, sb=sb, bb=bb, buy_in=stack))
    chips = list(stacks) if stacks is not None else [stack] * seats
    for idx, amount in enumerate(chips):
        engine.seat_player(idx, Player(id=f"p{idx}", name=f"Player{idx}", stack=amount))
    return engine


def start_hand(engine: GameEngine, seed: int = 42) -> HandState:
    hand = engine.start_hand(seed=seed)
    assert hand is not None
    return hand


def perform_actions(engine: GameEngine, actions: Iterable[Tuple[int, ActionType, Optional[int]]]) -> None:
    """Apply a scripted sequence of actions (seat, action, amount)."""
    for seat_idx, action, amount in actions:
        engine.apply_action(seat_idx, action, amount)


def auto_complete_hand(engine: GameEngine) -> None:
    """Check or call down until the current hand settles."""
    while engine.hand_in_progress():
        assert engine.hand is not None
        actor = engine.hand.current
        if actor is None:
            break
        legal, *_ = engine.legal_actions(actor)
        if ActionType.CHECK in legal:
            engine.apply_action(actor, ActionType.CHECK)
        else:
            engine.apply_action(actor, ActionType.CALL)


def total_chips(engine: GameEngine) -> int:
    """Stacks plus everything still in the middle, counting seats vacated mid-hand."""
    hand = engine.hand
    players = {id(p): p for p in engine.seats if p is not None}
    if hand is not None:
        players.update({id(p): p for p in hand.players if p is not None})
    chips = sum(p.stack for p in players.values())
    if hand is not None:
        chips += hand.pot + sum(hand.bets)
    return chips


def stack_deck(monkeypatch, hole_rounds: Sequence[Sequence[str]], board: Sequence[str]) -> None:
    """Force the next deck: ``hole_rounds`` lists each dealing pass in seat order
    starting left of the dealer; burn cards are filled in from the leftovers."""
    wanted = parse_cards([label for round_ in hole_rounds for label in round_] + list(board))
    spare = [card for card in build_deck(seed=0) if card not in wanted]
    holes = [card for round_ in hole_rounds for card in parse_cards(round_)]
    flop, turn, river = parse_cards(board[:3]), parse_cards(board[3:4]), parse_cards(board[4:5])

    order: List = list(holes)
    for street in (flop, turn, river):
        order.append(spare.pop())
        order.extend(street)
    # Cards are drawn from the end of the list.
    deck = spare + order[::-1]
    monkeypatch.setattr("holdem.game.build_deck", lambda seed=None: list(deck))
