#!/usr/bin/env python3
"""Run a local room simulation: one in-process server and scripted clients.

With --drop, the last client disconnects after its first reveal so the
remaining seats have to auto-play its hole cards.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from websockets.asyncio.client import connect

from rooms import RoomConfig, RoomServer

LOGGER = logging.getLogger("room_sim")


@dataclass
class ClientProfile:
    name: str
    rng: random.Random
    is_host: bool = False
    drop_after_reveal: bool = False


async def send(ws, msg_type: str, **payload: Any) -> None:
    await ws.send(json.dumps({"type": msg_type, "v": 1, **payload}))


async def run_client(
    profile: ClientProfile,
    url: str,
    code_future: "asyncio.Future[str]",
    players: int,
    games: int,
    done: asyncio.Event,
) -> None:
    is_host = profile.is_host
    finished = 0
    last_version = -1
    in_game = False
    started = False
    player_id: Optional[str] = None
    slot: Optional[int] = None

    try:
        async with connect(url) as ws:
            await send(ws, "hello", name=profile.name)
            if is_host:
                await send(ws, "create_room")
            else:
                await send(ws, "join_room", code=await code_future)

            async for raw in ws:
                message: Dict[str, Any] = json.loads(raw)
                msg_type = message.get("type")

                if msg_type == "welcome":
                    player_id = message["player_id"]
                elif msg_type == "joined":
                    slot = message["slot"]
                    if is_host and not code_future.done():
                        code_future.set_result(message["code"])
                    LOGGER.info("%s seated in slot %s", profile.name, slot)
                elif msg_type == "players":
                    for seat in message.get("players", []):
                        if seat["player_id"] == player_id:
                            slot = seat["slot"]
                    if is_host and not started and len(message.get("players", [])) >= players:
                        started = True
                        await send(ws, "start_game")
                elif msg_type == "room":
                    room = message.get("room")
                    if room is None or room["version"] <= last_version:
                        continue
                    last_version = room["version"]
                    game = room.get("game_state")
                    if game is None:
                        continue
                    if room["status"] == "finished":
                        if not in_game:
                            continue
                        in_game = False
                        finished += 1
                        winners = [p["name"] for p in game["players"] if p["id"] in (game.get("winners") or [])]
                        LOGGER.info("%s saw game %s end, winner(s): %s", profile.name, finished, ", ".join(winners))
                        if finished >= games:
                            done.set()
                            return
                        if room["host_id"] == player_id:
                            await send(ws, "new_game")
                        continue
                    in_game = True
                    if slot in game.get("waiting_for_players", []):
                        me = next(p for p in game["players"] if p["id"] == slot)
                        if me["hole_cards"]:
                            card = profile.rng.choice(me["hole_cards"])
                            await send(ws, "reveal", card_id=card["id"])
                            if profile.drop_after_reveal:
                                LOGGER.info("%s dropping out after round %s", profile.name, game["current_round"])
                                return
                elif msg_type == "error":
                    LOGGER.warning("%s received error %s", profile.name, message)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Client %s crashed: %s", profile.name, exc)


async def run_simulation(args: argparse.Namespace) -> None:
    config = RoomConfig(max_seats=args.players, auto_play_delay_ms=args.auto_play_delay)
    server = RoomServer(config)

    server_task = asyncio.create_task(server.start(args.host, args.port))
    await asyncio.sleep(0.5)  # give the socket time to bind

    url = f"ws://{args.host}:{args.port}/"
    loop = asyncio.get_running_loop()
    code_future: asyncio.Future[str] = loop.create_future()
    done = asyncio.Event()

    profiles = [
        ClientProfile(
            name=f"SimClient{i}",
            rng=random.Random(args.seed + i),
            is_host=i == 0,
            drop_after_reveal=args.drop and i == args.players - 1,
        )
        for i in range(args.players)
    ]
    games = 1 if args.drop else args.games

    tasks = [
        asyncio.create_task(run_client(profile, url, code_future, args.players, games, done))
        for profile in profiles
    ]

    try:
        await asyncio.wait_for(done.wait(), timeout=args.timeout)
        LOGGER.info("Simulation finished")
    except asyncio.TimeoutError:
        LOGGER.warning("Simulation timed out; stopping clients")
    finally:
        for task in tasks:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
        server_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server_task


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a local room simulation with scripted clients")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9001)
    parser.add_argument("--players", type=int, default=4, choices=range(2, 6))
    parser.add_argument("--games", type=int, default=3)
    parser.add_argument("--drop", action="store_true", help="disconnect the last client mid-game")
    parser.add_argument("--auto-play-delay", type=int, default=300)
    parser.add_argument("--timeout", type=float, default=60.0, help="max seconds to run before stopping")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        asyncio.run(run_simulation(args))
    except KeyboardInterrupt:
        LOGGER.info("Simulation interrupted; shutting down")


if __name__ == "__main__":
    main()
