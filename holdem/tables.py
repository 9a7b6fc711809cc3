from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import CapacityError, StateError, ValidationError
from .game import GameEngine
from .models import ActionResult, ActionType, Player, TableConfig, TablePhase

LOGGER = logging.getLogger("holdem.tables")

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MIN_SEATS = 2
MAX_SEATS = 10

EventListener = Callable[[str, List[Dict[str, object]]], None]


@dataclass
class DeferredStart:
    """A cancellable "deal the next hand later" request for one table."""

    table_code: str
    token: int
    delay_s: float
    handle: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


@dataclass
class Table:
    code: str
    host_id: str
    config: TableConfig
    engine: GameEngine
    phase: TablePhase = TablePhase.WAITING
    pending_start: Optional[DeferredStart] = None

    @property
    def seats(self) -> List[Optional[Player]]:
        return self.engine.seats

    def hand_in_progress(self) -> bool:
        return self.engine.hand_in_progress()

    def occupied(self) -> int:
        return sum(1 for seat in self.seats if seat is not None)

    def summary(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "host_id": self.host_id,
            "players": self.occupied(),
            "max_seats": self.config.max_seats,
            "sb": self.config.sb,
            "bb": self.config.bb,
            "buy_in": self.config.buy_in,
            "in_progress": self.hand_in_progress(),
            "is_private": self.config.is_private,
        }


class TableManager:
    """Owns every live table, keyed by code, and the hand-to-hand bookkeeping."""

    def __init__(
        self,
        listener: Optional[EventListener] = None,
        rng: Optional[random.Random] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.tables: Dict[str, Table] = {}
        self.listener = listener
        self._rng = rng or random.Random()
        self._loop = loop
        self._tokens = itertools.count(1)

    # Table lifecycle -------------------------------------------------

    def create_table(
        self,
        host_id: str,
        max_seats: int = 6,
        blinds: Sequence[int] = (5, 10),
        buy_in: int = 1_000,
        is_private: bool = False,
        next_hand_delay_ms: int = 4_000,
    ) -> Table:
        if len(blinds) != 2:
            raise ValidationError("BAD_CONFIG", "Blinds must be a (small, big) pair")
        sb, bb = blinds
        for value in (max_seats, sb, bb, buy_in, next_hand_delay_ms):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError("BAD_CONFIG", "Table settings must be integers")
        if not MIN_SEATS <= max_seats <= MAX_SEATS:
            raise ValidationError("BAD_CONFIG", f"Seats must be between {MIN_SEATS} and {MAX_SEATS}")
        if not 0 < sb <= bb:
            raise ValidationError("BAD_CONFIG", "Blinds must satisfy 0 < small <= big")
        if buy_in <= 0 or next_hand_delay_ms < 0:
            raise ValidationError("BAD_CONFIG", "Buy-in must be positive")

        config = TableConfig(
            max_seats=max_seats,
            sb=sb,
            bb=bb,
            buy_in=buy_in,
            is_private=bool(is_private),
            next_hand_delay_ms=next_hand_delay_ms,
        )
        code = self._new_code()
        table = Table(code=code, host_id=host_id, config=config, engine=GameEngine(config))
        self.tables[code] = table
        LOGGER.info("Table %s created by %s (seats=%s blinds=%s/%s)", code, host_id, max_seats, sb, bb)
        return table

    def get_table(self, code: str) -> Table:
        table = self.tables.get(code.strip().upper()) if isinstance(code, str) else None
        if table is None:
            raise StateError("TABLE_NOT_FOUND", "Table not found")
        return table

    def delete_table(self, code: str) -> None:
        table = self.tables.pop(code.strip().upper(), None)
        if table is None:
            return
        if table.pending_start is not None:
            table.pending_start.cancel()
            table.pending_start = None
        LOGGER.info("Table %s closed", table.code)

    def list_tables(self, include_private: bool = False) -> List[Dict[str, object]]:
        return [
            table.summary()
            for table in self.tables.values()
            if include_private or not table.config.is_private
        ]

    def _new_code(self) -> str:
        while True:
            code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self.tables:
                return code

    # Seating ---------------------------------------------------------

    def join_table(
        self,
        code: str,
        player_id: str,
        name: str,
        buy_in: Optional[int] = None,
        invited: bool = False,
    ) -> Tuple[int, List[Dict[str, object]]]:
        table = self.get_table(code)
        existing = table.engine.find_seat(player_id)
        if existing is not None:
            return existing, []
        if table.config.is_private and not invited and player_id != table.host_id:
            raise CapacityError("PRIVATE_TABLE", "This is a private table. You need the table code or link to join.")
        seat_idx = table.engine.first_open_seat()
        return seat_idx, self.seat_player(table.code, seat_idx, player_id, name, buy_in)

    def seat_player(
        self,
        code: str,
        seat_idx: int,
        player_id: str,
        name: str,
        buy_in: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        table = self.get_table(code)
        existing = table.engine.find_seat(player_id)
        if existing is not None:
            return self.move_seat(table.code, existing, seat_idx)

        chips = table.config.buy_in if buy_in is None else buy_in
        if isinstance(chips, bool) or not isinstance(chips, int) or chips <= 0:
            raise ValidationError("BAD_AMOUNT", "Buy-in must be a positive integer")
        # Anyone seated mid-hand is simply not dealt in until the next hand.
        player = table.engine.seat_player(seat_idx, Player(id=player_id, name=name, stack=chips))
        LOGGER.info("Table %s: seat %s taken by %s (stack=%s)", table.code, seat_idx, name, player.stack)
        events: List[Dict[str, object]] = [{"ev": "PLAYER_JOINED", "seat": seat_idx, "name": name}]
        events.extend(self._try_auto_start(table))
        return events

    def vacate_seat(self, code: str, seat_idx: int) -> List[Dict[str, object]]:
        table = self.get_table(code)
        player, result = table.engine.remove_player(seat_idx)
        player.sitting_out = True
        LOGGER.info("Table %s: %s left seat %s", table.code, player.name, seat_idx)
        events: List[Dict[str, object]] = [{"ev": "PLAYER_LEFT", "seat": seat_idx, "name": player.name}]
        events.extend(result.events)
        if result.hand_complete:
            events.extend(self._finish_hand(table))
        events.extend(self._cancel_if_short(table))
        return events

    def move_seat(self, code: str, from_idx: int, to_idx: int) -> List[Dict[str, object]]:
        table = self.get_table(code)
        player = table.engine.move_player(from_idx, to_idx)
        events: List[Dict[str, object]] = [
            {"ev": "PLAYER_MOVED", "name": player.name, "from": from_idx, "to": to_idx}
        ]
        events.extend(self._try_auto_start(table))
        return events

    def sit_in(self, code: str, seat_idx: int) -> List[Dict[str, object]]:
        table = self.get_table(code)
        player = table.engine.occupant(seat_idx)
        if player.stack <= 0:
            raise ValidationError("INSUFFICIENT_CHIPS", "Cannot sit in without chips")
        player.sitting_out = False
        events: List[Dict[str, object]] = [{"ev": "SAT_IN", "seat": seat_idx, "name": player.name}]
        events.extend(self._try_auto_start(table))
        return events

    def sit_out(self, code: str, seat_idx: int) -> List[Dict[str, object]]:
        table = self.get_table(code)
        player = table.engine.occupant(seat_idx)
        result = table.engine.fold_out(seat_idx)
        player.sitting_out = True
        events: List[Dict[str, object]] = [{"ev": "SAT_OUT", "seat": seat_idx, "name": player.name}]
        events.extend(result.events)
        if result.hand_complete:
            events.extend(self._finish_hand(table))
        events.extend(self._cancel_if_short(table))
        return events

    # Hands -----------------------------------------------------------

    def start_hand(self, code: str, requester_id: Optional[str] = None) -> bool:
        table = self.get_table(code)
        if requester_id is not None and requester_id != table.host_id:
            raise StateError("NOT_HOST", "Only the host can start the game")
        if table.hand_in_progress():
            raise StateError("HAND_IN_PROGRESS", "A hand is already in progress")
        if not table.engine.can_start_hand():
            return False
        if table.pending_start is not None:
            table.pending_start.cancel()
            table.pending_start = None
        table.phase = TablePhase.PLAYING
        return self._start(table)

    def submit_action(
        self,
        code: str,
        seat_idx: int,
        action: ActionType,
        amount: Optional[int] = None,
    ) -> ActionResult:
        table = self.get_table(code)
        result = table.engine.apply_action(seat_idx, action, amount)
        LOGGER.debug("Table %s: seat %s %s %s", table.code, seat_idx, action, amount)
        if result.hand_complete:
            result.events.extend(self._finish_hand(table))
        return result

    def reveal_card(self, code: str, seat_idx: int, card_idx: int, revealed: bool = True) -> List[Dict[str, object]]:
        return self.get_table(code).engine.reveal_card(seat_idx, card_idx, revealed)

    def show_cards(self, code: str, seat_idx: int) -> List[Dict[str, object]]:
        return self.get_table(code).engine.show_cards(seat_idx)

    def public_view(self, code: str, viewer_id: Optional[str] = None) -> Dict[str, object]:
        table = self.get_table(code)
        view = table.engine.public_view(viewer_id)
        view.update(
            {
                "code": table.code,
                "host_id": table.host_id,
                "table_phase": table.phase.value,
                "is_private": table.config.is_private,
                "next_hand_pending": table.pending_start is not None,
            }
        )
        return view

    def _try_auto_start(self, table: Table) -> List[Dict[str, object]]:
        if table.phase != TablePhase.WAITING or table.hand_in_progress() or not table.engine.can_start_hand():
            return []
        table.phase = TablePhase.PLAYING
        if not self._start(table):
            table.phase = TablePhase.WAITING
            return []
        return table.engine.consume_pre_events()

    def _start(self, table: Table) -> bool:
        hand = table.engine.start_hand()
        if hand is None:
            return False
        LOGGER.info("Table %s: hand %s started (dealer=%s)", table.code, hand.hand_id, hand.dealer)
        hand.pre_events.insert(
            0,
            {"ev": "HAND_STARTED", "hand_number": hand.hand_number, "hand_id": hand.hand_id, "dealer": hand.dealer},
        )
        if hand.complete:
            hand.pre_events.extend(self._finish_hand(table))
        return True

    def _finish_hand(self, table: Table) -> List[Dict[str, object]]:
        events: List[Dict[str, object]] = []
        hand = table.engine.hand
        if hand is not None:
            LOGGER.info("Table %s: hand %s finished", table.code, hand.hand_id)
        for idx, seat in enumerate(table.seats):
            if seat is not None and seat.stack == 0 and not seat.sitting_out:
                seat.sitting_out = True
                events.append({"ev": "ELIMINATED", "seat": idx, "name": seat.name})

        if not table.engine.can_start_hand():
            events.extend(self._game_over(table))
            return events

        pending = self._schedule_next_hand(table)
        events.append({"ev": "NEXT_HAND", "delay_ms": int(pending.delay_s * 1000)})
        return events

    def _cancel_if_short(self, table: Table) -> List[Dict[str, object]]:
        # A pending next hand that can no longer be dealt ends the game now.
        if table.pending_start is None or table.engine.can_start_hand():
            return []
        table.pending_start.cancel()
        table.pending_start = None
        return self._game_over(table)

    def _game_over(self, table: Table) -> List[Dict[str, object]]:
        winner = next((seat for seat in table.seats if seat is not None and seat.eligible), None)
        table.phase = TablePhase.WAITING
        LOGGER.info("Table %s: game over (winner=%s)", table.code, winner.name if winner else None)
        return [{"ev": "GAME_OVER", "winner": winner.name if winner else None}]

    # Deferred starts -------------------------------------------------

    def _schedule_next_hand(self, table: Table) -> DeferredStart:
        if table.pending_start is not None:
            table.pending_start.cancel()
        pending = DeferredStart(
            table_code=table.code,
            token=next(self._tokens),
            delay_s=table.config.next_hand_delay_ms / 1000,
        )
        loop = self._loop or _running_loop()
        if loop is not None:
            pending.handle = loop.call_later(pending.delay_s, self.fire_deferred_start, table.code, pending.token)
        table.pending_start = pending
        return pending

    def fire_deferred_start(self, code: str, token: int) -> bool:
        table = self.tables.get(code)
        if table is None or table.pending_start is None or table.pending_start.token != token:
            LOGGER.debug("Dropping stale deferred start for %s", code)
            return False
        table.pending_start = None
        if table.hand_in_progress():
            return False
        started = self._start(table)
        events = table.engine.consume_pre_events() if started else self._game_over(table)
        if self.listener is not None:
            self.listener(table.code, events)
        return started


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
