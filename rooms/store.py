from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, List, Optional

from .records import Room, RoomPlayer

LOGGER = logging.getLogger("room_store")

RoomListener = Callable[[Optional[Room]], Awaitable[None]]
PlayersListener = Callable[[List[RoomPlayer]], Awaitable[None]]
LobbyListener = Callable[[str, Optional[Room]], Awaitable[None]]

# MemoryRoomStore mirrors the two shared tables (rooms, room_players) with
# their unique constraints, and pushes change notifications to subscribers
# once a write is committed. Everything a client knows about a room comes
# from here; nothing else is shared between clients.


class StoreError(Exception):
    """A read or write against the shared store failed."""


class ConflictError(StoreError):
    """A unique or foreign-key constraint rejected the write."""


class StaleWriteError(StoreError):
    """The row changed since it was read (version mismatch)."""


@dataclass
class _Subscription:
    room_id: str
    on_room: Optional[RoomListener]
    on_players: Optional[PlayersListener]


class MemoryRoomStore:
    def __init__(self, max_seats: int = 5) -> None:
        self.max_seats = max_seats
        self.lock = asyncio.Lock()
        self._rooms: Dict[str, Room] = {}
        self._players: Dict[str, Dict[str, RoomPlayer]] = {}
        self._subscriptions: List[_Subscription] = []
        self._lobby_listeners: List[LobbyListener] = []

    # Rooms -----------------------------------------------------------

    async def insert_room(self, room: Room) -> Room:
        async with self.lock:
            if room.id in self._rooms:
                raise ConflictError(f"Room id already exists: {room.id}")
            if any(existing.code == room.code for existing in self._rooms.values()):
                raise ConflictError(f"Room code already in use: {room.code}")
            self._rooms[room.id] = room
            self._players[room.id] = {}
        LOGGER.debug("Inserted room %s (%s)", room.id, room.code)
        await self._publish_room(room.id, room)
        return room

    async def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    async def find_room_by_code(self, code: str) -> Optional[Room]:
        for room in self._rooms.values():
            if room.code == code:
                return room
        return None

    async def list_rooms(self) -> List[Room]:
        return sorted(self._rooms.values(), key=lambda room: room.created_at)

    async def update_room(self, room_id: str, *, expected_version: Optional[int] = None, **changes: object) -> Optional[Room]:
        async with self.lock:
            room = self._rooms.get(room_id)
            if room is None:
                return None
            if expected_version is not None and room.version != expected_version:
                raise StaleWriteError(
                    f"Room {room_id} is at version {room.version}, expected {expected_version}"
                )
            updated = replace(room, version=room.version + 1, **changes)
            self._rooms[room_id] = updated
        await self._publish_room(room_id, updated)
        return updated

    async def delete_room(self, room_id: str) -> bool:
        async with self.lock:
            room = self._rooms.pop(room_id, None)
            if room is None:
                return False
            # Seats go with the room.
            self._players.pop(room_id, None)
        LOGGER.debug("Deleted room %s (%s)", room_id, room.code)
        await self._publish_room(room_id, None)
        await self._publish_players(room_id)
        return True

    # Seats -----------------------------------------------------------

    async def insert_player(self, player: RoomPlayer) -> RoomPlayer:
        async with self.lock:
            seats = self._players.get(player.room_id)
            if seats is None:
                raise ConflictError(f"Room does not exist: {player.room_id}")
            self._check_slot(player.slot)
            if player.player_id in seats:
                raise ConflictError(f"Player {player.player_id} already seated in room {player.room_id}")
            if any(seat.slot == player.slot for seat in seats.values()):
                raise ConflictError(f"Slot {player.slot} taken in room {player.room_id}")
            seats[player.player_id] = player
        await self._publish_players(player.room_id)
        return player

    async def get_player(self, room_id: str, player_id: str) -> Optional[RoomPlayer]:
        return self._players.get(room_id, {}).get(player_id)

    async def list_players(self, room_id: str) -> List[RoomPlayer]:
        return sorted(self._players.get(room_id, {}).values(), key=lambda seat: seat.slot)

    async def update_player(self, room_id: str, player_id: str, **changes: object) -> Optional[RoomPlayer]:
        async with self.lock:
            seats = self._players.get(room_id, {})
            seat = seats.get(player_id)
            if seat is None:
                return None
            slot = changes.get("slot")
            if slot is not None and slot != seat.slot:
                self._check_slot(int(slot))  # type: ignore[arg-type]
                if any(other.slot == slot for other in seats.values()):
                    raise ConflictError(f"Slot {slot} taken in room {room_id}")
            updated = replace(seat, **changes)
            seats[player_id] = updated
        await self._publish_players(room_id)
        return updated

    async def delete_player(self, room_id: str, player_id: str) -> bool:
        async with self.lock:
            seat = self._players.get(room_id, {}).pop(player_id, None)
        if seat is None:
            return False
        await self._publish_players(room_id)
        return True

    def _check_slot(self, slot: int) -> None:
        if not 0 <= slot < self.max_seats:
            raise ConflictError(f"Slot {slot} outside 0..{self.max_seats - 1}")

    # Change feed -----------------------------------------------------

    def subscribe(
        self,
        room_id: str,
        on_room: Optional[RoomListener] = None,
        on_players: Optional[PlayersListener] = None,
    ) -> Callable[[], None]:
        subscription = _Subscription(room_id=room_id, on_room=on_room, on_players=on_players)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def subscribe_lobby(self, listener: LobbyListener) -> Callable[[], None]:
        self._lobby_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._lobby_listeners:
                self._lobby_listeners.remove(listener)

        return unsubscribe

    async def _publish_room(self, room_id: str, room: Optional[Room]) -> None:
        targets = [sub.on_room(room) for sub in self._subscriptions if sub.room_id == room_id and sub.on_room]
        targets.extend(listener(room_id, room) for listener in self._lobby_listeners)
        await self._deliver(targets)

    async def _publish_players(self, room_id: str) -> None:
        listeners = [sub.on_players for sub in self._subscriptions if sub.room_id == room_id and sub.on_players]
        if not listeners:
            return
        # Subscribers always get the full, slot-ordered seat list.
        players = await self.list_players(room_id)
        await self._deliver([listener(list(players)) for listener in listeners])

    async def _deliver(self, targets: List[Awaitable[None]]) -> None:
        if not targets:
            return
        results = await asyncio.gather(*targets, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                LOGGER.error("Change subscriber failed: %r", result)
