from __future__ import annotations

import argparse
import asyncio
import json
import logging
from http import HTTPStatus
from typing import Any, Dict, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from core.models import DIFFICULTIES, GameState
from practice.session import HUMAN_SEAT, PracticeSession

LOGGER = logging.getLogger("practice_host")


async def _send_json(websocket: ServerConnection, payload: Dict[str, Any]) -> None:
    await websocket.send(json.dumps({"v": 1, **payload}))


async def _send_error(websocket: ServerConnection, code: str, msg: str) -> None:
    await _send_json(websocket, {"type": "error", "code": code, "msg": msg})


def state_payload(session: PracticeSession, state: GameState) -> Dict[str, Any]:
    return {
        "type": "state",
        "seat": HUMAN_SEAT,
        "difficulty": session.difficulty,
        "your_turn": HUMAN_SEAT in state.waiting_for_players,
        "state": state.to_payload(),
    }


async def handle_connection(websocket: ServerConnection, bot_delay_ms: int) -> None:
    try:
        hello = json.loads(await websocket.recv())
    except (json.JSONDecodeError, TypeError):
        hello = {}
    if not isinstance(hello, dict) or hello.get("type") != "hello":
        await _send_error(websocket, "BAD_HELLO", "Expected hello")
        return

    name_raw = hello.get("name")
    name = name_raw.strip() if isinstance(name_raw, str) else ""
    if not name:
        await _send_error(websocket, "BAD_SCHEMA", "name required")
        return
    difficulty = hello.get("difficulty") or "normal"
    if difficulty not in DIFFICULTIES:
        await _send_error(websocket, "BAD_DIFFICULTY", f"difficulty must be one of {sorted(DIFFICULTIES)}")
        return

    session = PracticeSession(name, difficulty, bot_delay_ms=bot_delay_ms)

    async def push(state: GameState) -> None:
        await _send_json(websocket, state_payload(session, state))

    LOGGER.info("Practice game for %s (%s)", name, difficulty)
    await push(session.start())
    await session.run_bots(push)

    async for raw in websocket:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            message = {}
        msg_type = message.get("type") if isinstance(message, dict) else None
        if msg_type == "reveal":
            card_id = message.get("card_id")
            if not isinstance(card_id, str):
                await _send_error(websocket, "BAD_SCHEMA", "card_id required")
                continue
            before = session.state
            state = session.reveal(card_id)
            if state is before:
                await _send_error(websocket, "NOT_YOUR_TURN", "No reveal pending for that card")
                continue
            await push(state)
        elif msg_type == "new_game":
            await push(session.start())
        else:
            await _send_error(websocket, "UNKNOWN_TYPE", "Unsupported message type")
            continue
        await session.run_bots(push)


async def _process_request(connection: ServerConnection, request: Any) -> Optional[Any]:
    """Return a simple HTTP response for health checks."""

    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None  # let the WebSocket handshake continue
    if request.path in {"/", "/health", "/healthz"}:
        return connection.respond(HTTPStatus.OK, "practice server running\n")
    return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")


async def run_server(host: str, port: int, bot_delay_ms: int) -> None:
    async def _handler(ws: ServerConnection) -> None:
        try:
            await handle_connection(ws, bot_delay_ms)
        except websockets.ConnectionClosed:
            LOGGER.info("Practice player disconnected")
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Practice session crashed: %s", exc)

    async with serve(_handler, host, port, process_request=_process_request):
        LOGGER.info("Practice server listening on %s:%s", host, port)
        await asyncio.Future()


def main() -> None:
    parser = argparse.ArgumentParser(description="Door stud practice server (you against four bots)")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=9876)
    parser.add_argument("--bot-delay", type=int, default=800, help="Milliseconds between bot reveals")
    args = parser.parse_args()

    asyncio.run(run_server(args.host, args.port, args.bot_delay))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
