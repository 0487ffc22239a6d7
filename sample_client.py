#!/usr/bin/env python3
"""
Reference client for the door stud room server.

Usage:
    pip install websockets
    # Create a room and start once three players are seated
    python sample_client.py --name Alice --start-at 3 --url ws://127.0.0.1:8765/
    # Join it from other terminals with the code the first client logs
    python sample_client.py --name Bob --code ABC234 --url ws://127.0.0.1:8765/

This script shows the core loop:
  * handshake with the host (hello -> welcome)
  * create or join a room
  * follow `room` / `players` pushes
  * reveal a hole card whenever our seat is in `waiting_for_players`

The `RevealContext` passed to `choose_card` includes:
  * Your door cards and already revealed hole cards (ctx.visible)
  * The ids of your remaining hole cards (ctx.hole_ids)
  * Every seat's visible cards (ctx.table)
  * The current round and who else is waiting

Replace the `choose_card` function with your own pick.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import websockets
from websockets.asyncio.client import ClientConnection, connect

LOGGER = logging.getLogger("sample_client")
STREAM_HANDLER = logging.StreamHandler()
STREAM_HANDLER.setFormatter(logging.Formatter("%(message)s"))
if not LOGGER.handlers:
    LOGGER.addHandler(STREAM_HANDLER)
LOGGER.propagate = False

USE_UNICODE_CARDS = True
SUIT_SYMBOLS = {"c": "♣", "d": "♦", "h": "♥", "s": "♠"}


@dataclass
class RevealContext:
    slot: int
    round: int
    visible: list[str]  # door cards + revealed hole cards, e.g. ["Ah", "Kd", ...]
    hole_ids: list[str]  # ids of hole cards still face down
    waiting: list[int]  # every slot that still has to reveal this round
    table: dict[int, list[str]]  # visible cards per slot


def choose_card(ctx: RevealContext) -> str:
    """Face-down cards carry no information, so any of them will do."""
    return ctx.hole_ids[0]


def build_context(state: Dict[str, Any], slot: int) -> Optional[RevealContext]:
    players = {player["id"]: player for player in state.get("players", [])}
    me = players.get(slot)
    if me is None or not me.get("hole_cards"):
        return None
    return RevealContext(
        slot=slot,
        round=state.get("current_round", 0),
        visible=[card["id"] for card in me["door_cards"] + me["revealed_hole_cards"]],
        hole_ids=[card["id"] for card in me["hole_cards"]],
        waiting=list(state.get("waiting_for_players", [])),
        table={
            pid: [card["id"] for card in player["door_cards"] + player["revealed_hole_cards"]]
            for pid, player in players.items()
        },
    )


async def send(websocket: ClientConnection, msg_type: str, **payload: Any) -> None:
    await websocket.send(json.dumps({"type": msg_type, "v": 1, **payload}))


async def play_room(websocket: ClientConnection, name: str, start_at: Optional[int], games: int) -> None:
    """Follow room pushes until the requested number of games has finished."""

    state: Dict[str, Any] = {
        "slot": None,
        "player_id": None,
        "host_id": None,
        "seated": 0,
        "finished_games": 0,
        "last_version": -1,
        "start_sent": False,
        "in_game": False,
    }

    async def maybe_start() -> None:
        if not start_at or state["start_sent"]:
            return
        if state["host_id"] == state["player_id"] and state["seated"] >= start_at:
            state["start_sent"] = True
            await send(websocket, "start_game")

    while True:
        raw = await websocket.recv()
        message = json.loads(raw)
        msg_type = message.get("type")

        if msg_type == "welcome":
            state["player_id"] = message.get("player_id")
            continue

        if msg_type == "joined":
            state["slot"] = message.get("slot")
            LOGGER.info("[room] %s seated in slot %s (code %s)", name, message.get("slot"), message.get("code"))
            continue

        if msg_type == "players":
            players = message.get("players", [])
            state["seated"] = len(players)
            for seat in players:
                if seat.get("player_id") == state["player_id"]:
                    state["slot"] = seat.get("slot")
            LOGGER.info("[players] %s", format_seats(players))
            await maybe_start()
            continue

        if msg_type == "room":
            room = message.get("room")
            if room is None:
                LOGGER.info("[room] closed")
                break
            if room.get("version", 0) <= state["last_version"]:
                continue
            state["last_version"] = room.get("version", 0)
            state["host_id"] = room.get("host_id")
            game = room.get("game_state")
            if game is None:
                await maybe_start()
                continue

            if room.get("status") == "finished":
                if not state["in_game"]:
                    continue
                state["in_game"] = False
                state["finished_games"] += 1
                log_result(game)
                if state["finished_games"] >= games:
                    break
                if state["host_id"] == state["player_id"]:
                    await send(websocket, "new_game")
                continue

            state["in_game"] = True
            slot = state["slot"]
            if slot is not None and slot in game.get("waiting_for_players", []):
                ctx = build_context(game, slot)
                if ctx is not None:
                    card_id = choose_card(ctx)
                    if card_id not in ctx.hole_ids:
                        LOGGER.warning("choose_card returned %s, not a hole card; using first", card_id)
                        card_id = ctx.hole_ids[0]
                    LOGGER.info("[round %s] revealing %s", ctx.round, render_card(card_id))
                    await send(websocket, "reveal", card_id=card_id)
            continue

        if msg_type == "error":
            LOGGER.warning("[error] %s", message)
            continue

        LOGGER.debug("Ignoring message type=%s", msg_type)


async def run_client(
    name: str,
    url: str,
    code: Optional[str] = None,
    start_at: Optional[int] = None,
    player_id: Optional[str] = None,
    games: int = 1,
) -> None:
    async with connect(url) as ws:
        hello: Dict[str, Any] = {"name": name}
        if player_id:
            hello["player_id"] = player_id
        await send(ws, "hello", **hello)
        LOGGER.info("[connect] %s as %s", url, name)
        if code:
            await send(ws, "join_room", code=code)
        else:
            await send(ws, "create_room")
        await play_room(ws, name, start_at, games)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sample door stud client")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--url", default="ws://127.0.0.1:8765/", help="WebSocket URL")
    parser.add_argument("--code", help="Room code to join (omit to create a room)")
    parser.add_argument("--start-at", type=int, help="As host, start once this many players are seated")
    parser.add_argument("--player-id", help="Stable player id, to reclaim a seat after a disconnect")
    parser.add_argument("--games", type=int, default=1)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    LOGGER.setLevel(getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        asyncio.run(
            run_client(
                args.name,
                args.url,
                code=args.code,
                start_at=args.start_at,
                player_id=args.player_id,
                games=args.games,
            )
        )
    except (OSError, websockets.InvalidHandshake) as exc:
        LOGGER.error("Failed to connect to %s: %s", args.url, exc)
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------


def log_result(game: Dict[str, Any]) -> None:
    players = {player["id"]: player for player in game.get("players", [])}
    winners = [players[pid]["name"] for pid in game.get("winners") or [] if pid in players]
    LOGGER.info("[showdown] after %s rounds, winner(s): %s", game.get("current_round"), ", ".join(winners) or "-")
    for player in players.values():
        cards = [card["id"] for card in player["door_cards"] + player["revealed_hole_cards"] + player["hole_cards"]]
        LOGGER.info("    %s: %s", player["name"], render_cards(cards))


def format_seats(players: List[Dict[str, Any]]) -> str:
    if not players:
        return "-"
    return ", ".join(
        f"{seat.get('slot')}:{seat.get('player_name')}{'' if seat.get('is_online') else ' (offline)'}"
        for seat in players
    )


def render_card(card: str) -> str:
    """Return a card such as 'Ah' rendered with a unicode suit if enabled."""

    if USE_UNICODE_CARDS and len(card) == 2 and card[1] in SUIT_SYMBOLS:
        return card[0] + SUIT_SYMBOLS[card[1]]
    return card


def render_cards(cards: list[str]) -> str:
    """Render a sequence of cards for logging."""

    if not cards:
        return "--"
    return " ".join(render_card(card) for card in cards)


if __name__ == "__main__":
    main()
