from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Container, Dict, List, Optional, Tuple

from .cards import Card, Deck, build_deck, cards_to_labels
from .errors import CapacityError, StateError, ValidationError
from .evaluator import HandValue, evaluate
from .models import (
    ActionResult,
    ActionType,
    HandResult,
    OutcomeKind,
    Phase,
    Player,
    PotResult,
    TableConfig,
)
from .pots import Pot, build_side_pots, total_contributed

# GameEngine keeps one table's seats and hand in memory. No networking lives
# here, only poker rules, chip accounting, and betting order.

NEXT_PHASE = {
    Phase.PRE_FLOP: Phase.FLOP,
    Phase.FLOP: Phase.TURN,
    Phase.TURN: Phase.RIVER,
    Phase.RIVER: Phase.SHOWDOWN,
}
STREET_CARDS = {Phase.FLOP: 3, Phase.TURN: 1, Phase.RIVER: 1}


@dataclass
class HandState:
    # Everything mutable about one hand. ``players`` is a seat-indexed snapshot
    # of who was dealt in; it keeps pointing at a Player after they leave.
    hand_number: int
    hand_id: str
    deck: Deck
    players: List[Optional[Player]]
    dealer: int
    sb_seat: int = -1
    bb_seat: int = -1
    current: Optional[int] = None
    community: List[Card] = field(default_factory=list)
    phase: Phase = Phase.PRE_FLOP
    pot: int = 0
    current_bet: int = 0
    min_raise: int = 0
    bets: List[int] = field(default_factory=list)
    contributions: List[int] = field(default_factory=list)
    acted: List[bool] = field(default_factory=list)
    side_pots: List[Pot] = field(default_factory=list)
    result: Optional[HandResult] = None
    pre_events: List[Dict[str, object]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.result is not None


class GameEngine:
    """No-Limit Texas Hold'em engine for a single table."""

    def __init__(self, config: TableConfig) -> None:
        self.config = config
        self.seats: List[Optional[Player]] = [None] * config.max_seats
        self.dealer: Optional[int] = None
        self.hand_counter = 0
        self.hand: Optional[HandState] = None

    # Seat management -------------------------------------------------

    def seat_player(self, seat_idx: int, player: Player) -> Player:
        self._check_seat_index(seat_idx)
        if self.seats[seat_idx] is not None:
            raise CapacityError("SEAT_TAKEN", "Seat is taken")
        self.seats[seat_idx] = player
        return player

    def first_open_seat(self) -> int:
        for idx, seat in enumerate(self.seats):
            if seat is None:
                return idx
        raise CapacityError("TABLE_FULL", "Table is full")

    def remove_player(self, seat_idx: int) -> Tuple[Player, ActionResult]:
        player = self.occupant(seat_idx)
        # Fold first: the hand snapshot still holds the Player for settlement.
        result = self.fold_out(seat_idx)
        self.seats[seat_idx] = None
        return player, result

    def move_player(self, from_idx: int, to_idx: int) -> Player:
        player = self.occupant(from_idx)
        self._check_seat_index(to_idx)
        if self.seats[to_idx] is not None:
            raise CapacityError("SEAT_TAKEN", "Seat is taken")
        if self._is_live(from_idx, player):
            raise StateError("HAND_IN_PROGRESS", "Cannot move seats during active hand")
        self.seats[from_idx] = None
        self.seats[to_idx] = player
        return player

    def find_seat(self, player_id: str) -> Optional[int]:
        for idx, seat in enumerate(self.seats):
            if seat is not None and seat.id == player_id:
                return idx
        return None

    def eligible_seats(self) -> List[int]:
        return [idx for idx, seat in enumerate(self.seats) if seat is not None and seat.eligible]

    def can_start_hand(self) -> bool:
        return len(self.eligible_seats()) >= 2

    def hand_in_progress(self) -> bool:
        return self.hand is not None and not self.hand.complete

    # Hand lifecycle --------------------------------------------------

    def start_hand(self, seed: Optional[int] = None) -> Optional[HandState]:
        if self.hand_in_progress():
            raise StateError("HAND_IN_PROGRESS", "A hand is already in progress")
        eligible = self.eligible_seats()
        if len(eligible) < 2:
            return None

        dealer = self._next_seat(-1 if self.dealer is None else self.dealer, eligible)
        if dealer is None:
            return None
        self.dealer = dealer

        size = self.config.max_seats
        players = [self.seats[idx] if idx in eligible else None for idx in range(size)]
        for player in players:
            if player is not None:
                player.reset_for_hand()

        self.hand_counter += 1
        hand = HandState(
            hand_number=self.hand_counter,
            hand_id=f"H-{time.strftime('%Y%m%d')}-{self.hand_counter:05d}",
            deck=Deck(build_deck(seed)),
            players=players,
            dealer=dealer,
            min_raise=self.config.bb,
            bets=[0] * size,
            contributions=[0] * size,
            acted=[False] * size,
        )
        self.hand = hand

        heads_up = len(eligible) == 2
        self._post_blinds(hand, eligible, heads_up)
        self._deal_hole_cards(hand, eligible)

        first = hand.sb_seat if heads_up else self._next_seat(hand.bb_seat, eligible)
        actors = self._actor_seats(hand)
        if not actors or (len(actors) == 1 and hand.bets[actors[0]] >= hand.current_bet):
            self._run_out(hand, hand.pre_events)
        else:
            hand.current = self._next_needing_action(hand, first, inclusive=True)
        return hand

    def _post_blinds(self, hand: HandState, eligible: List[int], heads_up: bool) -> None:
        if heads_up:
            sb_seat = hand.dealer
        else:
            sb_seat = self._next_seat(hand.dealer, eligible)
        bb_seat = self._next_seat(sb_seat, eligible)
        assert sb_seat is not None and bb_seat is not None
        hand.sb_seat = sb_seat
        hand.bb_seat = bb_seat

        sb_paid = self._commit(hand, sb_seat, self.config.sb)
        bb_paid = self._commit(hand, bb_seat, self.config.bb)
        # A short big blind sets the bet; never below what the small blind put in.
        hand.current_bet = max(bb_paid, sb_paid)
        hand.min_raise = self.config.bb
        hand.pre_events.append(
            {
                "ev": "POST_BLINDS",
                "sb_seat": sb_seat,
                "bb_seat": bb_seat,
                "sb": sb_paid,
                "bb": bb_paid,
            }
        )

    def _deal_hole_cards(self, hand: HandState, eligible: List[int]) -> None:
        order = self._rotation(hand.dealer, eligible)
        for _ in range(2):
            for seat_idx in order:
                player = hand.players[seat_idx]
                assert player is not None
                player.hole_cards.append(hand.deck.draw())

    def _commit(self, hand: HandState, seat_idx: int, amount: int) -> int:
        player = hand.players[seat_idx]
        assert player is not None
        amount = min(amount, player.stack)
        player.stack -= amount
        hand.bets[seat_idx] += amount
        hand.contributions[seat_idx] += amount
        if player.stack == 0:
            player.all_in = True
        return amount

    # Action handling -------------------------------------------------

    def legal_actions(self, seat_idx: int) -> Tuple[List[ActionType], Optional[int], Optional[int], Optional[int]]:
        hand = self._require_hand()
        self._check_seat_index(seat_idx)
        if not self._can_act(hand, seat_idx):
            raise ValidationError("NOT_IN_HAND", "Seat not active")
        player = hand.players[seat_idx]
        assert player is not None

        # Return every legal move plus helper numbers (amount to call, min/max raise).
        owed = hand.current_bet - hand.bets[seat_idx]
        legal: List[ActionType] = [ActionType.FOLD]
        legal.append(ActionType.CHECK if owed <= 0 else ActionType.CALL)

        min_raise_to: Optional[int] = None
        max_raise_to: Optional[int] = None
        all_in_to = player.stack + hand.bets[seat_idx]
        # A seat that already acted may only call or fold until a full raise reopens action.
        reopened = not hand.acted[seat_idx]
        if all_in_to > hand.current_bet and reopened:
            max_raise_to = all_in_to
            min_raise_to = min(hand.current_bet + hand.min_raise, all_in_to)
            legal.append(ActionType.RAISE)
        if reopened or all_in_to <= hand.current_bet:
            legal.append(ActionType.ALL_IN)

        call_amount = min(owed, player.stack) if owed > 0 else None
        return legal, call_amount, min_raise_to, max_raise_to

    def apply_action(self, seat_idx: int, action: ActionType, amount: Optional[int] = None) -> ActionResult:
        hand = self._require_hand()
        self._check_seat_index(seat_idx)
        try:
            action = ActionType(action)
        except ValueError:
            raise ValidationError("INVALID_ACTION", f"Unsupported action {action}") from None
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int) or amount < 0):
            raise ValidationError("BAD_AMOUNT", "Amount must be a non-negative integer")
        if hand.current != seat_idx:
            raise ValidationError("OUT_OF_TURN", "Not your turn")
        player = hand.players[seat_idx]
        if player is None or player.folded or player.all_in:
            raise ValidationError("NOT_IN_HAND", "Cannot act")

        owed = max(hand.current_bet - hand.bets[seat_idx], 0)
        events: List[Dict[str, object]] = []

        # Every branch validates before it touches a chip.
        if action == ActionType.FOLD:
            player.folded = True
            events.append({"ev": "FOLD", "seat": seat_idx})
        elif action == ActionType.CHECK:
            if owed > 0:
                raise ValidationError("CANNOT_CHECK", "Cannot check when facing a bet")
            events.append({"ev": "CHECK", "seat": seat_idx})
        elif action == ActionType.CALL:
            paid = self._commit(hand, seat_idx, owed)
            events.append({"ev": "CALL", "seat": seat_idx, "amount": paid, "all_in": player.all_in})
        elif action == ActionType.RAISE:
            if amount is None:
                raise ValidationError("BAD_AMOUNT", "Raise requires amount")
            if hand.acted[seat_idx]:
                raise ValidationError("INVALID_ACTION", "Action was not reopened")
            all_in_to = player.stack + hand.bets[seat_idx]
            if amount > all_in_to:
                raise ValidationError("INSUFFICIENT_CHIPS", "Raise exceeds stack")
            if amount <= hand.current_bet:
                raise ValidationError("RAISE_TOO_SMALL", "Raise must exceed current bet")
            if amount < hand.current_bet + hand.min_raise and amount != all_in_to:
                raise ValidationError("RAISE_TOO_SMALL", "Raise below minimum")
            self._raise_to(hand, seat_idx, amount, ActionType.RAISE, events)
        else:
            all_in_to = player.stack + hand.bets[seat_idx]
            if all_in_to > hand.current_bet:
                if hand.acted[seat_idx]:
                    raise ValidationError("INVALID_ACTION", "Action was not reopened")
                self._raise_to(hand, seat_idx, all_in_to, ActionType.ALL_IN, events)
            else:
                paid = self._commit(hand, seat_idx, player.stack)
                events.append({"ev": "ALL_IN", "seat": seat_idx, "amount": paid, "to": hand.bets[seat_idx], "reopened": False})

        hand.acted[seat_idx] = True
        return self._progress(hand, seat_idx, events)

    def _raise_to(
        self,
        hand: HandState,
        seat_idx: int,
        target: int,
        action: ActionType,
        events: List[Dict[str, object]],
    ) -> None:
        increment = target - hand.current_bet
        paid = self._commit(hand, seat_idx, target - hand.bets[seat_idx])
        full_raise = increment >= hand.min_raise
        if full_raise:
            hand.min_raise = increment
            hand.acted = [False] * len(hand.acted)
        hand.current_bet = target
        events.append({"ev": action.value, "seat": seat_idx, "amount": paid, "to": target, "reopened": full_raise})

    def fold_out(self, seat_idx: int) -> ActionResult:
        """Fold a seat's live hand regardless of turn (leaving or sitting out)."""
        hand = self.hand
        if hand is None or hand.complete:
            return ActionResult()
        player = hand.players[seat_idx]
        if player is None or player.folded:
            return ActionResult()
        player.folded = True
        events: List[Dict[str, object]] = [{"ev": "FOLD", "seat": seat_idx, "forced": True}]
        return self._progress(hand, seat_idx, events, keep_current=hand.current != seat_idx)

    def _progress(
        self,
        hand: HandState,
        seat_idx: int,
        events: List[Dict[str, object]],
        keep_current: bool = False,
    ) -> ActionResult:
        live = self._live_seats(hand)
        if len(live) == 1:
            self._award_uncontested(hand, live[0], events)
            return ActionResult(events, OutcomeKind.HAND_COMPLETE, hand.result)

        actors = self._actor_seats(hand)
        if all(self._settled(hand, seat) for seat in actors):
            if len(actors) <= 1:
                self._run_out(hand, events)
                return ActionResult(events, OutcomeKind.HAND_COMPLETE, hand.result)
            self._advance_street(hand, events)
            if hand.complete:
                return ActionResult(events, OutcomeKind.HAND_COMPLETE, hand.result)
            return ActionResult(events, OutcomeKind.PHASE_ADVANCE)

        if not (keep_current and hand.current is not None and not self._settled(hand, hand.current)):
            hand.current = self._next_needing_action(hand, seat_idx)
        return ActionResult(events)

    def _advance_street(self, hand: HandState, events: List[Dict[str, object]]) -> None:
        self._collect_bets(hand)
        upcoming = NEXT_PHASE[hand.phase]
        if upcoming == Phase.SHOWDOWN:
            self._showdown(hand, events)
            return
        self._deal_street(hand, upcoming, events)
        hand.current_bet = 0
        hand.min_raise = self.config.bb
        hand.acted = [False] * len(hand.acted)
        hand.current = self._next_needing_action(hand, hand.dealer)

    def _deal_street(self, hand: HandState, phase: Phase, events: List[Dict[str, object]]) -> None:
        hand.deck.burn()
        cards = hand.deck.deal(STREET_CARDS[phase])
        hand.community.extend(cards)
        hand.phase = phase
        events.append({"ev": phase.value, "cards": cards_to_labels(cards)})

    def _run_out(self, hand: HandState, events: List[Dict[str, object]]) -> None:
        # No more betting possible: deal the remaining streets, then show down.
        self._collect_bets(hand)
        hand.current = None
        if hand.phase != Phase.RIVER:
            events.append({"ev": "RUNOUT", "from": hand.phase.value})
        while hand.phase != Phase.RIVER:
            self._deal_street(hand, NEXT_PHASE[hand.phase], events)
        self._showdown(hand, events)

    def _collect_bets(self, hand: HandState) -> None:
        hand.pot += sum(hand.bets)
        hand.bets = [0] * len(hand.bets)

    # Settlement ------------------------------------------------------

    def _award_uncontested(self, hand: HandState, seat_idx: int, events: List[Dict[str, object]]) -> None:
        self._collect_bets(hand)
        winner = hand.players[seat_idx]
        assert winner is not None
        amount = hand.pot
        winner.stack += amount
        hand.pot = 0
        hand.phase = Phase.SHOWDOWN
        hand.current = None
        hand.side_pots = [Pot(amount=amount, eligible=[seat_idx])]
        hand.result = HandResult(
            hand_id=hand.hand_id,
            uncontested=True,
            pots=[PotResult(amount=amount, eligible=[seat_idx], winners=[seat_idx])],
            payouts={seat_idx: amount},
        )
        events.append({"ev": "POT_AWARD", "seat": seat_idx, "amount": amount})
        events.append({"ev": "HAND_COMPLETE", **hand.result.to_payload()})

    def _showdown(self, hand: HandState, events: List[Dict[str, object]]) -> None:
        self._collect_bets(hand)
        hand.phase = Phase.SHOWDOWN
        hand.current = None
        board = list(hand.community)

        scores: Dict[int, HandValue] = {}
        for seat_idx in self._live_seats(hand):
            player = hand.players[seat_idx]
            assert player is not None
            player.went_to_showdown = True
            score = evaluate(player.hole_cards + board)
            scores[seat_idx] = score
            events.append(
                {
                    "ev": "SHOWDOWN",
                    "seat": seat_idx,
                    "rank": score.name,
                }
            )

        hand.side_pots = build_side_pots(
            hand.contributions,
            [player is None or player.folded for player in hand.players],
        )
        pot_results: List[PotResult] = []
        payouts: Dict[int, int] = {}
        for pot in hand.side_pots:
            contenders = [seat for seat in pot.eligible if seat in scores]
            if not contenders:
                continue
            best = max(scores[seat].key for seat in contenders)
            winners = sorted(seat for seat in contenders if scores[seat].key == best)
            # Odd chips go to the earliest tied seats, one each.
            share, remainder = divmod(pot.amount, len(winners))
            for idx, seat_idx in enumerate(winners):
                payout = share + (1 if idx < remainder else 0)
                player = hand.players[seat_idx]
                assert player is not None
                player.stack += payout
                player.must_show = True
                payouts[seat_idx] = payouts.get(seat_idx, 0) + payout
                events.append({"ev": "POT_AWARD", "seat": seat_idx, "amount": payout})
            pot_results.append(
                PotResult(
                    amount=pot.amount,
                    eligible=list(pot.eligible),
                    winners=winners,
                    hand=scores[winners[0]].name,
                )
            )

        hand.pot -= total_contributed(hand.side_pots)
        hand.result = HandResult(hand_id=hand.hand_id, uncontested=False, pots=pot_results, payouts=payouts)
        events.append({"ev": "HAND_COMPLETE", **hand.result.to_payload()})

    # Reveals ---------------------------------------------------------

    def reveal_card(self, seat_idx: int, card_idx: int, revealed: bool = True) -> List[Dict[str, object]]:
        hand = self._require_hand(allow_complete=True)
        self._check_seat_index(seat_idx)
        if card_idx not in (0, 1):
            raise ValidationError("BAD_CARD", "Card index must be 0 or 1")
        player = hand.players[seat_idx]
        if player is None or player is not self.seats[seat_idx] or not player.hole_cards:
            raise ValidationError("NOT_IN_HAND", "No cards to reveal")
        player.revealed[card_idx] = bool(revealed)
        if not revealed:
            return []
        return [{"ev": "CARD_REVEALED", "seat": seat_idx, "card_idx": card_idx, "card": player.hole_cards[card_idx].label}]

    def show_cards(self, seat_idx: int) -> List[Dict[str, object]]:
        hand = self._require_hand(allow_complete=True)
        self._check_seat_index(seat_idx)
        if hand.phase != Phase.SHOWDOWN:
            raise StateError("NOT_SHOWDOWN", "Cards can only be shown after the hand")
        player = hand.players[seat_idx]
        if player is None or player is not self.seats[seat_idx] or not player.hole_cards:
            raise ValidationError("NOT_IN_HAND", "No cards to show")
        if player.folded:
            raise ValidationError("NOT_IN_HAND", "Folded hands cannot be shown")
        player.voluntary_show = True
        return [{"ev": "SHOW_CARDS", "seat": seat_idx, "cards": cards_to_labels(player.hole_cards)}]

    # Public/Snapshot helpers -----------------------------------------

    def consume_pre_events(self) -> List[Dict[str, object]]:
        if not self.hand:
            return []
        events = list(self.hand.pre_events)
        self.hand.pre_events.clear()
        return events

    def public_view(self, viewer_id: Optional[str] = None) -> Dict[str, object]:
        hand = self.hand
        at_showdown = hand is not None and hand.phase == Phase.SHOWDOWN
        players: List[Optional[Dict[str, object]]] = []
        viewer_seat: Optional[int] = None
        for idx, seat in enumerate(self.seats):
            if seat is None:
                players.append(None)
                continue
            is_me = viewer_id is not None and seat.id == viewer_id
            if is_me:
                viewer_seat = idx
            in_hand = hand is not None and hand.players[idx] is seat
            players.append(
                {
                    "seat": idx,
                    "id": seat.id,
                    "name": seat.name,
                    "stack": seat.stack,
                    "folded": seat.folded if in_hand else False,
                    "all_in": seat.all_in if in_hand else False,
                    "sitting_out": seat.sitting_out,
                    "in_hand": in_hand,
                    "bet": hand.bets[idx] if hand is not None and in_hand else 0,
                    "cards": self._visible_cards(seat, is_me, at_showdown) if in_hand else [],
                    "revealed": list(seat.revealed) if in_hand else [False, False],
                    "went_to_showdown": seat.went_to_showdown if in_hand else False,
                    "is_me": is_me,
                    "can_show": bool(
                        is_me and in_hand and at_showdown and seat.hole_cards and not (seat.must_show or seat.voluntary_show)
                    ),
                }
            )

        view: Dict[str, object] = {
            "players": players,
            "sb": self.config.sb,
            "bb": self.config.bb,
            "max_seats": self.config.max_seats,
            "hand_in_progress": self.hand_in_progress(),
        }
        if hand is None:
            view.update({"phase": None, "pot": 0, "community": [], "current": None, "dealer": self.dealer})
            return view

        view.update(
            {
                "hand_number": hand.hand_number,
                "hand_id": hand.hand_id,
                "phase": hand.phase.value,
                "pot": hand.pot,
                "bets": list(hand.bets),
                "community": cards_to_labels(hand.community),
                "current_bet": hand.current_bet,
                "min_raise": hand.min_raise,
                "current": hand.current,
                "dealer": hand.dealer,
                "sb_seat": hand.sb_seat,
                "bb_seat": hand.bb_seat,
            }
        )
        if hand.result is not None:
            view["result"] = hand.result.to_payload()
        if viewer_seat is not None and hand.current == viewer_seat:
            legal, call_amount, min_raise_to, max_raise_to = self.legal_actions(viewer_seat)
            view["legal"] = [action.value for action in legal]
            view["call_amount"] = call_amount
            view["min_raise_to"] = min_raise_to
            view["max_raise_to"] = max_raise_to
        return view

    def _visible_cards(self, player: Player, is_me: bool, at_showdown: bool) -> List[Optional[str]]:
        if is_me or (at_showdown and (player.must_show or player.voluntary_show)):
            return cards_to_labels(player.hole_cards)
        return [card.label if player.revealed[idx] else None for idx, card in enumerate(player.hole_cards)]

    # Seat scans ------------------------------------------------------

    def _require_hand(self, allow_complete: bool = False) -> HandState:
        if self.hand is None or (self.hand.complete and not allow_complete):
            raise StateError("NO_HAND", "Hand not in progress")
        return self.hand

    def _check_seat_index(self, seat_idx: int) -> None:
        if isinstance(seat_idx, bool) or not isinstance(seat_idx, int) or not 0 <= seat_idx < self.config.max_seats:
            raise ValidationError("BAD_SEAT", f"Seat index out of range: {seat_idx}")

    def occupant(self, seat_idx: int) -> Player:
        self._check_seat_index(seat_idx)
        player = self.seats[seat_idx]
        if player is None:
            raise ValidationError("BAD_SEAT", "Seat is empty")
        return player

    def _is_live(self, seat_idx: int, player: Player) -> bool:
        hand = self.hand
        return (
            hand is not None
            and not hand.complete
            and hand.players[seat_idx] is player
            and not player.folded
        )

    def _live_seats(self, hand: HandState) -> List[int]:
        return [idx for idx, player in enumerate(hand.players) if player is not None and not player.folded]

    def _can_act(self, hand: HandState, seat_idx: int) -> bool:
        player = hand.players[seat_idx]
        return (
            player is not None
            and not player.folded
            and not player.all_in
            and not player.sitting_out
            and player.stack > 0
        )

    def _actor_seats(self, hand: HandState) -> List[int]:
        return [idx for idx in range(len(hand.players)) if self._can_act(hand, idx)]

    def _settled(self, hand: HandState, seat_idx: int) -> bool:
        return hand.acted[seat_idx] and hand.bets[seat_idx] >= hand.current_bet

    def _next_needing_action(self, hand: HandState, start: int, inclusive: bool = False) -> Optional[int]:
        size = self.config.max_seats
        first_step = 0 if inclusive else 1
        for step in range(first_step, first_step + size):
            idx = (start + step) % size
            if self._can_act(hand, idx) and not self._settled(hand, idx):
                return idx
        return None

    def _next_seat(self, start: int, allowed: Container[int]) -> Optional[int]:
        size = self.config.max_seats
        for step in range(1, size + 1):
            idx = (start + step) % size
            if idx in allowed:
                return idx
        return None

    def _rotation(self, start: int, allowed: Container[int]) -> List[int]:
        size = self.config.max_seats
        return [(start + step) % size for step in range(1, size + 1) if (start + step) % size in allowed]
