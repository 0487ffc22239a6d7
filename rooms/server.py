from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, List, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from .client import RoomClient
from .records import Room, RoomConfig, RoomPlayer, new_id
from .store import MemoryRoomStore

LOGGER = logging.getLogger("room_host")

# RoomServer puts the shared room store behind WebSockets. Each connection
# gets its own RoomClient bound to the player's id, so game logic runs in the
# client layer exactly as it would for a process talking to the store directly.


@dataclass
class Connection:
    websocket: ServerConnection
    client: RoomClient
    name: str
    room_id: Optional[str] = None
    lobby_unsubscribe: Optional[Callable[[], None]] = None

    @property
    def player_id(self) -> str:
        return self.client.player_id


class RoomServer:
    def __init__(self, config: RoomConfig, store: Optional[MemoryRoomStore] = None) -> None:
        self.config = config
        self.store = store or MemoryRoomStore(max_seats=config.max_seats)
        self.connections: Dict[str, Connection] = {}
        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Awaitable[None]]] = {
            "create_room": self._handle_create_room,
            "join_room": self._handle_join_room,
            "rejoin": self._handle_rejoin,
            "leave_room": self._handle_leave_room,
            "start_game": self._handle_start_game,
            "reveal": self._handle_reveal,
            "advance": self._handle_advance,
            "new_game": self._handle_new_game,
            "watch_lobby": self._handle_watch_lobby,
        }

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with serve(self._handle_connection, host, port, process_request=_process_request):
            LOGGER.info("Room server listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
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
        player_id_raw = hello.get("player_id")
        player_id = player_id_raw.strip() if isinstance(player_id_raw, str) and player_id_raw.strip() else new_id()

        conn = Connection(websocket=websocket, client=RoomClient(self.store, player_id, self.config), name=name)
        # Register first: the replaced handler must not see itself as current.
        previous = self.connections.get(player_id)
        self.connections[player_id] = conn
        if previous:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")
        LOGGER.info("%s connected as %s", name, player_id)
        await self._send_json(websocket, "welcome", {
            "player_id": player_id,
            "config": {
                "max_seats": self.config.max_seats,
                "min_players": self.config.min_players,
                "auto_play_delay_ms": self.config.auto_play_delay_ms,
            },
        })

        try:
            async for raw in websocket:
                message = self._decode(raw)
                await self._dispatch(conn, message)
        except websockets.ConnectionClosed:
            pass
        finally:
            await self._disconnect(conn)

    async def _dispatch(self, conn: Connection, message: Dict[str, Any]) -> None:
        handler = self._handlers.get(str(message.get("type")))
        if handler is None:
            await self._send_error(conn.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
            return
        LOGGER.debug("Message from %s: %s", conn.player_id, message)
        await handler(conn, message)

    async def _disconnect(self, conn: Connection) -> None:
        if conn.lobby_unsubscribe:
            conn.lobby_unsubscribe()
            conn.lobby_unsubscribe = None
        # A replaced connection must not take the player offline.
        if self.connections.get(conn.player_id) is conn:
            self.connections.pop(conn.player_id, None)
            if conn.room_id:
                await conn.client.leave_room(conn.room_id)
        await conn.client.close()
        LOGGER.info("%s (%s) disconnected", conn.name, conn.player_id)

    # Requests --------------------------------------------------------

    async def _handle_create_room(self, conn: Connection, message: Dict[str, Any]) -> None:
        created = await conn.client.create_room(conn.name)
        if created is None:
            await self._send_error(conn.websocket, code="ACTION_REJECTED", msg="Could not create room")
            return
        room, seat = created
        await self._send_json(conn.websocket, "joined", {"room_id": room.id, "code": room.code, "slot": seat.slot})
        await self._enter_room(conn, room.id)

    async def _handle_join_room(self, conn: Connection, message: Dict[str, Any]) -> None:
        code = message.get("code")
        if not isinstance(code, str) or not code.strip():
            await self._send_error(conn.websocket, code="BAD_SCHEMA", msg="code required")
            return
        seat = await conn.client.join_room(code, conn.name)
        if seat is None:
            await self._send_error(conn.websocket, code="JOIN_REJECTED", msg="Room not found, full or already playing")
            return
        await self._send_json(conn.websocket, "joined", {"room_id": seat.room_id, "code": code.strip().upper(), "slot": seat.slot})
        await self._enter_room(conn, seat.room_id)

    async def _handle_rejoin(self, conn: Connection, message: Dict[str, Any]) -> None:
        room_id = message.get("room_id")
        if not isinstance(room_id, str):
            await self._send_error(conn.websocket, code="BAD_SCHEMA", msg="room_id required")
            return
        if not await conn.client.set_online(room_id, True):
            await self._send_error(conn.websocket, code="ROOM_NOT_FOUND", msg="No seat in that room")
            return
        await self._enter_room(conn, room_id)

    async def _handle_leave_room(self, conn: Connection, message: Dict[str, Any]) -> None:
        if not conn.room_id:
            await self._send_error(conn.websocket, code="NOT_IN_ROOM", msg="Join a room first")
            return
        room_id, conn.room_id = conn.room_id, None
        await conn.client.leave_room(room_id)
        await self._send_json(conn.websocket, "left", {"room_id": room_id})

    async def _handle_start_game(self, conn: Connection, message: Dict[str, Any]) -> None:
        await self._room_action(conn, "start_game", conn.client.start_game)

    async def _handle_reveal(self, conn: Connection, message: Dict[str, Any]) -> None:
        card_id = message.get("card_id")
        if not isinstance(card_id, str):
            await self._send_error(conn.websocket, code="BAD_SCHEMA", msg="card_id required")
            return
        await self._room_action(conn, "reveal", lambda room_id: conn.client.reveal_card(room_id, card_id))

    async def _handle_advance(self, conn: Connection, message: Dict[str, Any]) -> None:
        await self._room_action(conn, "advance", conn.client.advance_round)

    async def _handle_new_game(self, conn: Connection, message: Dict[str, Any]) -> None:
        await self._room_action(conn, "new_game", conn.client.new_game)

    async def _handle_watch_lobby(self, conn: Connection, message: Dict[str, Any]) -> None:
        if conn.lobby_unsubscribe is None:
            async def push(room_id: str, room: Optional[Room]) -> None:
                await self._send_json(conn.websocket, "lobby", {
                    "room_id": room_id,
                    "room": _lobby_entry(room) if room else None,
                })

            conn.lobby_unsubscribe = self.store.subscribe_lobby(push)
        rooms = await self.store.list_rooms()
        await self._send_json(conn.websocket, "lobby_snapshot", {"rooms": [_lobby_entry(room) for room in rooms]})

    async def _room_action(self, conn: Connection, name: str, action: Callable[[str], Awaitable[Any]]) -> None:
        if not conn.room_id:
            await self._send_error(conn.websocket, code="NOT_IN_ROOM", msg="Join a room first")
            return
        result = await action(conn.room_id)
        if result is None:
            LOGGER.warning("Rejected %s from %s in room %s", name, conn.player_id, conn.room_id)
            await self._send_error(conn.websocket, code="ACTION_REJECTED", msg=f"{name} not applied")

    # Change feed -----------------------------------------------------

    async def _enter_room(self, conn: Connection, room_id: str) -> None:
        if conn.room_id and conn.room_id != room_id:
            conn.client.unwatch(conn.room_id)
        conn.room_id = room_id

        async def push_room(room: Optional[Room]) -> None:
            if room is None and conn.room_id == room_id:
                conn.room_id = None
            await self._send_json(conn.websocket, "room", {"room": room.to_payload() if room else None})

        async def push_players(players: List[RoomPlayer]) -> None:
            await self._send_json(conn.websocket, "players", {
                "room_id": room_id,
                "players": [seat.to_payload() for seat in players],
            })

        await conn.client.watch(room_id, on_room=push_room, on_players=push_players)

    # Wire helpers ----------------------------------------------------

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

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Any) -> Dict[str, Any]:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        return message if isinstance(message, dict) else {}


def _lobby_entry(room: Room) -> Dict[str, object]:
    return {
        "id": room.id,
        "code": room.code,
        "status": room.status.value,
        "created_at": room.created_at.isoformat(),
    }


def _process_request(connection: ServerConnection, request: Any) -> Any:
    """Plain HTTP health checks next to the WebSocket endpoint."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None
    if request.path in {"/", "/health", "/healthz"}:
        return connection.respond(HTTPStatus.OK, "room server running\n")
    return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")
