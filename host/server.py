from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve

from holdem.errors import PokerError, StateError, ValidationError
from holdem.tables import Table, TableManager

LOGGER = logging.getLogger("holdem_host")

# HostServer glues the table manager to WebSocket clients. Every network
# concern lives here; the engine and manager stay free of I/O.


@dataclass
class ClientSession:
    player_id: str
    name: str
    websocket: ServerConnection
    table_code: Optional[str] = None


Handler = Callable[[ClientSession, Dict[str, object]], Awaitable[None]]


class HostServer:
    def __init__(self, next_hand_delay_ms: int = 4_000) -> None:
        self.manager = TableManager(listener=self._on_table_events)
        self.next_hand_delay_ms = next_hand_delay_ms
        self.sessions: Dict[str, ClientSession] = {}
        # One lock per table: a table's state is only ever mutated by one request at a time.
        self.locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Handler] = {
            "create_table": self._handle_create_table,
            "join_table": self._handle_join_table,
            "take_seat": self._handle_take_seat,
            "leave_seat": self._handle_leave_seat,
            "sit_in": self._handle_sit_in,
            "sit_out": self._handle_sit_out,
            "start_game": self._handle_start_game,
            "action": self._handle_action,
            "reveal_card": self._handle_reveal_card,
            "show_cards": self._handle_show_cards,
            "leave_table": self._handle_leave_table,
        }

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        # serve() keeps accepting clients until the process stops.
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Host server listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        # First message must be "hello" so we know who we are talking to.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        name_raw = hello.get("name")
        name = name_raw.strip() if isinstance(name_raw, str) else ""
        if not name:
            await self._send_error(websocket, code="BAD_SCHEMA", msg="name required")
            await websocket.close()
            return

        session = ClientSession(player_id=uuid.uuid4().hex[:12], name=name, websocket=websocket)
        self.sessions[session.player_id] = session
        LOGGER.info("Client %s connected as %s", session.player_id, name)
        await self._send_json(
            websocket,
            "welcome",
            {"player_id": session.player_id, "tables": self.manager.list_tables()},
        )

        try:
            async for raw in websocket:
                await self._dispatch(session, self._decode(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            await self._leave_table(session)
            self.sessions.pop(session.player_id, None)
            LOGGER.info("Client %s (%s) disconnected", session.player_id, name)

    async def _dispatch(self, session: ClientSession, message: Dict[str, object]) -> None:
        msg_type = message.get("type")
        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            await self._send_error(session.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
            return
        try:
            await handler(session, message)
        except PokerError as exc:
            LOGGER.warning(
                "Rejected %s from %s table=%s reason=%s",
                msg_type,
                session.player_id,
                session.table_code,
                exc.code,
            )
            await self._send_error(session.websocket, code=exc.code, msg=exc.msg)

    # Message handlers ------------------------------------------------

    async def _handle_create_table(self, session: ClientSession, message: Dict[str, object]) -> None:
        await self._leave_table(session)
        table = self.manager.create_table(
            session.player_id,
            max_seats=message.get("max_seats", 6),
            blinds=(message.get("sb", 5), message.get("bb", 10)),
            buy_in=message.get("buy_in", 1_000),
            is_private=bool(message.get("private", False)),
            next_hand_delay_ms=self.next_hand_delay_ms,
        )
        async with self._lock(table.code):
            events = self.manager.seat_player(table.code, 0, session.player_id, session.name)
        session.table_code = table.code
        await self._send_json(
            session.websocket,
            "table_joined",
            {"code": table.code, "seat": 0, "is_private": table.config.is_private, "host": True},
        )
        await self._publish(table.code, events)

    async def _handle_join_table(self, session: ClientSession, message: Dict[str, object]) -> None:
        code = message.get("code")
        if not isinstance(code, str):
            raise ValidationError("BAD_SCHEMA", "code required")
        table = self.manager.get_table(code)
        if session.table_code != table.code:
            await self._leave_table(session)
        async with self._lock(table.code):
            seat_idx, events = self.manager.join_table(
                table.code,
                session.player_id,
                session.name,
                buy_in=message.get("buy_in"),
                invited=bool(message.get("invited", False)),
            )
        session.table_code = table.code
        await self._send_json(
            session.websocket,
            "table_joined",
            {
                "code": table.code,
                "seat": seat_idx,
                "is_private": table.config.is_private,
                "host": table.host_id == session.player_id,
            },
        )
        await self._publish(table.code, events)

    async def _handle_take_seat(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.seat_player(
                table.code,
                message.get("seat"),
                session.player_id,
                session.name,
                buy_in=message.get("buy_in"),
            )
        await self._publish(table.code, events)

    async def _handle_leave_seat(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.vacate_seat(table.code, self._require_seat(table, session))
        await self._publish(table.code, events)

    async def _handle_sit_in(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.sit_in(table.code, self._require_seat(table, session))
        await self._publish(table.code, events)

    async def _handle_sit_out(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.sit_out(table.code, self._require_seat(table, session))
        await self._publish(table.code, events)

    async def _handle_start_game(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            started = self.manager.start_hand(table.code, requester_id=session.player_id)
            events = table.engine.consume_pre_events() if started else []
        if not started:
            await self._send_error(session.websocket, code="NOT_ENOUGH_PLAYERS", msg="Need at least 2 players")
            return
        await self._publish(table.code, events)

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        action_name = message.get("action")
        if not isinstance(action_name, str):
            raise ValidationError("INVALID_ACTION", "Unknown action")
        amount = message.get("amount")
        async with self._lock(table.code):
            seat_idx = self._require_seat(table, session)
            result = self.manager.submit_action(table.code, seat_idx, action_name.strip().upper(), amount)
        LOGGER.debug(
            "Applied action table=%s seat=%s action=%s amount=%s outcome=%s",
            table.code,
            seat_idx,
            action_name,
            amount,
            result.outcome,
        )
        await self._publish(table.code, result.events)

    async def _handle_reveal_card(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.reveal_card(
                table.code,
                self._require_seat(table, session),
                message.get("card_idx"),
                bool(message.get("revealed", True)),
            )
        await self._publish(table.code, events)

    async def _handle_show_cards(self, session: ClientSession, message: Dict[str, object]) -> None:
        table = self._require_table(session)
        async with self._lock(table.code):
            events = self.manager.show_cards(table.code, self._require_seat(table, session))
        await self._publish(table.code, events)

    async def _handle_leave_table(self, session: ClientSession, message: Dict[str, object]) -> None:
        await self._leave_table(session)
        await self._send_json(session.websocket, "left_table", {"tables": self.manager.list_tables()})

    async def _leave_table(self, session: ClientSession) -> None:
        code = session.table_code
        if code is None:
            return
        session.table_code = None
        table = self.manager.tables.get(code)
        if table is None:
            return
        events: List[Dict[str, object]] = []
        async with self._lock(code):
            seat_idx = table.engine.find_seat(session.player_id)
            if seat_idx is not None:
                events = self.manager.vacate_seat(code, seat_idx)
            closed = table.occupied() == 0
            if closed:
                self.manager.delete_table(code)
        if closed:
            self.locks.pop(code, None)
            return
        await self._publish(code, events)

    # Helpers ---------------------------------------------------------

    def _require_table(self, session: ClientSession) -> Table:
        if session.table_code is None:
            raise StateError("NOT_AT_TABLE", "Join a table first")
        return self.manager.get_table(session.table_code)

    def _require_seat(self, table: Table, session: ClientSession) -> int:
        seat_idx = table.engine.find_seat(session.player_id)
        if seat_idx is None:
            raise ValidationError("BAD_SEAT", "You are not seated")
        return seat_idx

    def _lock(self, code: str) -> asyncio.Lock:
        return self.locks.setdefault(code, asyncio.Lock())

    def _on_table_events(self, code: str, events: List[Dict[str, object]]) -> None:
        # Called from the manager's deferred start timer on the event loop.
        task = asyncio.get_running_loop().create_task(self._publish(code, events))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _publish(self, code: str, events: List[Dict[str, object]]) -> None:
        for event in events:
            await self._broadcast(code, "event", event)
        await self._push_views(code)

    async def _push_views(self, code: str) -> None:
        if code not in self.manager.tables:
            return
        async with self._lock(code):
            views = [
                (session.websocket, self.manager.public_view(code, session.player_id))
                for session in self._table_sessions(code)
            ]
        await asyncio.gather(
            *(self._send_json(socket, "table_state", view) for socket, view in views),
            return_exceptions=True,
        )

    async def _broadcast(self, code: str, msg_type: str, payload: Dict[str, object]) -> None:
        targets = [session.websocket for session in self._table_sessions(code)]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    def _table_sessions(self, code: str) -> List[ClientSession]:
        return [session for session in self.sessions.values() if session.table_code == code]

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: str) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return message if isinstance(message, dict) else {}
