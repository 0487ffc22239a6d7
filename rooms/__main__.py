import argparse
import asyncio
import logging

from core.game import MAX_PLAYERS, MIN_PLAYERS

from .records import RoomConfig
from .server import RoomServer


def main() -> None:
    parser = argparse.ArgumentParser(description="Door stud room server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--max-seats", type=int, default=MAX_PLAYERS, choices=range(MIN_PLAYERS, MAX_PLAYERS + 1))
    parser.add_argument("--min-players", type=int, default=2)
    parser.add_argument(
        "--auto-play-delay",
        type=int,
        default=1_500,
        help="Milliseconds to wait before revealing for an offline player",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = RoomConfig(
        max_seats=args.max_seats,
        min_players=args.min_players,
        auto_play_delay_ms=args.auto_play_delay,
    )
    server = RoomServer(config)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
