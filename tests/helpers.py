from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from core.cards import Card, build_deck, parse_cards
from core.game import advance, initialize_game
from core.models import GameState, SeatDeal
from rooms.records import RoomStatus, encode_state, status_for
from rooms.store import MemoryRoomStore

# Two seats, 5 door + 5 hole each. Seat 0 opens weakest and ends with aces
# full of kings; seat 1 starts on a pair of deuces and never improves past
# two pair.
CLIMB_DOOR_0 = ["2h", "3d", "5c", "7s", "9h"]
CLIMB_HOLE_0 = ["Ah", "Ad", "Ac", "Kd", "Ks"]
CLIMB_DOOR_1 = ["2c", "2d", "4h", "6s", "8c"]
CLIMB_HOLE_1 = ["3c", "3h", "Tc", "Jd", "Qh"]
CLIMB_LABELS = CLIMB_DOOR_0 + CLIMB_HOLE_0 + CLIMB_DOOR_1 + CLIMB_HOLE_1

# (round, waiting seat, card that seat reveals first) for the deck above.
CLIMB_SEQUENCE = [
    (0, 0, "Ah"),
    (1, 0, "Ad"),
    (2, 1, "3c"),
    (3, 1, "3h"),
    (4, 0, "Ac"),
    (5, 1, "Tc"),
    (6, 1, "Jd"),
    (7, 1, "Qh"),
    (8, 0, "Kd"),
    (9, 0, "Ks"),
]

# Two seats holding the same ranks in different suits: they stay tied every
# round and split the pot with jack-high straights.
MIRROR_LABELS = [
    "2h", "4d", "6h", "8d", "Th", "3h", "5d", "7c", "9s", "Jc",
    "2d", "4h", "6d", "8h", "Td", "3d", "5h", "7s", "9c", "Js",
]


def stacked_deck(labels: Sequence[str]) -> List[Card]:
    """``labels`` on top, the rest of the deck below in canonical order."""
    top = parse_cards(labels)
    used = {card.id for card in top}
    return top + [card for card in build_deck() if card.id not in used]


def fixed_game(
    labels: Sequence[str] = CLIMB_LABELS,
    names: Sequence[str] = ("Alice", "Bob"),
    dealing: Optional[Sequence[SeatDeal]] = None,
) -> GameState:
    """A dealt game with its first round already opened."""
    return advance(initialize_game(list(names), dealing, deck=stacked_deck(labels)))


async def put_game(store: MemoryRoomStore, room_id: str, state: GameState, status: Optional[RoomStatus] = None) -> None:
    await store.update_room(room_id, game_state=encode_state(state), status=status or status_for(state))


async def wait_for(predicate: Callable[[], Awaitable[bool]], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll an async predicate until it holds or ``timeout`` runs out."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if await predicate():
            return True
        await asyncio.sleep(interval)
    return await predicate()


# Fake socket so we can exercise server paths without opening real connections.
class DummyWebSocket:
    def __init__(self, incoming: Optional[Sequence[Dict[str, Any]]] = None) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.incoming: list[str] = [json.dumps(message) for message in incoming or []]

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True

    async def recv(self) -> str:
        if not self.incoming:
            raise asyncio.TimeoutError
        return self.incoming.pop(0)

    def __aiter__(self) -> "DummyWebSocket":
        return self

    async def __anext__(self) -> str:
        if not self.incoming:
            raise StopAsyncIteration
        return self.incoming.pop(0)

    def messages(self, msg_type: Optional[str] = None) -> list[dict[str, Any]]:
        decoded = [json.loads(raw) for raw in self.sent]
        if msg_type is None:
            return decoded
        return [message for message in decoded if message.get("type") == msg_type]
