from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from core.game import advance, first_hole_card, initialize_game, reveal_card
from core.models import GameState, Phase

from .records import (
    Room,
    RoomConfig,
    RoomPlayer,
    RoomStatus,
    decode_state,
    encode_state,
    generate_room_code,
    new_id,
    status_for,
)
from .store import ConflictError, MemoryRoomStore, StaleWriteError, StoreError

LOGGER = logging.getLogger("room_client")

Transition = Callable[[GameState, List[RoomPlayer]], GameState]

# RoomClient is one participant's view of the shared store. Every game action
# is a read-modify-write: fetch the room, run a pure transition from
# core.game, write it back with the version that was read. Subscribers see
# the result through the store's change feed. Game player ids are seat slots.


def trigger_slot(players: Sequence[RoomPlayer]) -> Optional[int]:
    """Lowest online slot: the seat that plays on behalf of offline seats."""
    online = [seat.slot for seat in players if seat.is_online]
    return min(online) if online else None


def seat_of(players: Sequence[RoomPlayer], player_id: str) -> Optional[RoomPlayer]:
    for seat in players:
        if seat.player_id == player_id:
            return seat
    return None


def offline_waiting(state: GameState, players: Sequence[RoomPlayer]) -> List[int]:
    online = {seat.slot for seat in players if seat.is_online}
    return [pid for pid in state.waiting_for_players if pid not in online]


class RoomClient:
    def __init__(
        self,
        store: MemoryRoomStore,
        player_id: Optional[str] = None,
        config: Optional[RoomConfig] = None,
    ) -> None:
        self.store = store
        self.player_id = player_id or new_id()
        self.config = config or RoomConfig()
        self.rooms: Dict[str, Room] = {}
        self.players: Dict[str, List[RoomPlayer]] = {}
        self._unsubscribers: Dict[str, List[Callable[[], None]]] = {}
        self._auto_play_tasks: Dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "RoomClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        for room_id in list(self._unsubscribers):
            self.unwatch(room_id)
        tasks = list(self._auto_play_tasks.values())
        self._auto_play_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # Lookups ---------------------------------------------------------

    async def get_room(self, room_id: str) -> Optional[Room]:
        try:
            return await self.store.get_room(room_id)
        except StoreError as exc:
            LOGGER.warning("Failed to read room %s: %s", room_id, exc)
            return None

    async def find_room(self, code: str) -> Optional[Room]:
        try:
            return await self.store.find_room_by_code(code.strip().upper())
        except StoreError as exc:
            LOGGER.warning("Failed to look up room %s: %s", code, exc)
            return None

    async def get_players(self, room_id: str) -> List[RoomPlayer]:
        try:
            return await self.store.list_players(room_id)
        except StoreError as exc:
            LOGGER.warning("Failed to read players of room %s: %s", room_id, exc)
            return []

    async def load_state(self, room_id: str) -> Optional[GameState]:
        room = await self.get_room(room_id)
        return decode_state(room.game_state) if room else None

    # Seats and host --------------------------------------------------

    async def create_room(self, host_name: str) -> Optional[Tuple[Room, RoomPlayer]]:
        for _ in range(self.config.write_attempts):
            room = Room(code=generate_room_code(), host_id=self.player_id)
            try:
                room = await self.store.insert_room(room)
            except ConflictError:
                LOGGER.info("Room code %s already in use; generating another", room.code)
                continue
            except StoreError as exc:
                LOGGER.warning("Failed to create room: %s", exc)
                return None

            seat = RoomPlayer(room_id=room.id, player_id=self.player_id, player_name=host_name, slot=0)
            try:
                seat = await self.store.insert_player(seat)
            except StoreError as exc:
                LOGGER.warning("Failed to seat host in room %s: %s", room.code, exc)
                await self._discard_room(room.id)
                return None
            LOGGER.info("Room %s created by %s", room.code, host_name)
            return room, seat
        LOGGER.warning("Could not find a free room code after %s attempts", self.config.write_attempts)
        return None

    async def join_room(self, code: str, player_name: str) -> Optional[RoomPlayer]:
        try:
            room = await self.store.find_room_by_code(code.strip().upper())
            if room is None:
                LOGGER.info("Room %s not found", code)
                return None
            players = await self.store.list_players(room.id)
            existing = seat_of(players, self.player_id)
            if existing is not None:
                if not existing.is_online:
                    existing = await self.store.update_player(room.id, self.player_id, is_online=True) or existing
                return existing
            if room.status != RoomStatus.WAITING:
                LOGGER.info("Room %s already started", room.code)
                return None

            for _ in range(self.config.write_attempts):
                used = {seat.slot for seat in players}
                slot = next((idx for idx in range(self.config.max_seats) if idx not in used), None)
                if slot is None:
                    LOGGER.info("Room %s is full", room.code)
                    return None
                try:
                    seat = await self.store.insert_player(
                        RoomPlayer(room_id=room.id, player_id=self.player_id, player_name=player_name, slot=slot)
                    )
                except ConflictError:
                    # Someone took the slot first; look again.
                    players = await self.store.list_players(room.id)
                    continue
                LOGGER.info("%s joined room %s in slot %s", player_name, room.code, slot)
                return seat
        except StoreError as exc:
            LOGGER.warning("Failed to join room %s: %s", code, exc)
        return None

    async def leave_room(self, room_id: str) -> bool:
        self.unwatch(room_id)
        self._cancel_auto_play(room_id)
        try:
            room = await self.store.get_room(room_id)
            if room is None:
                return False
            if room.status == RoomStatus.PLAYING:
                # Keep the seat so the game can continue for it.
                return await self.set_online(room_id, False)
            if not await self.store.delete_player(room_id, self.player_id):
                return False
            remaining = await self.store.list_players(room_id)
            online_seats = [seat for seat in remaining if seat.is_online]
            if not online_seats:
                await self.store.delete_room(room_id)
                LOGGER.info("Room %s deleted: no online player left", room.code)
                return True
            if room.host_id == self.player_id:
                await self.store.update_room(room_id, host_id=online_seats[0].player_id)
                LOGGER.info("Host of room %s moved to slot %s", room.code, online_seats[0].slot)
            return True
        except StoreError as exc:
            LOGGER.warning("Failed to leave room %s: %s", room_id, exc)
            return False

    async def set_online(self, room_id: str, online: bool) -> bool:
        try:
            seat = await self.store.update_player(room_id, self.player_id, is_online=online)
            if seat is None:
                return False
            LOGGER.info("Slot %s in room %s is now %s", seat.slot, room_id, "online" if online else "offline")
            if online:
                return True
            players = await self.store.list_players(room_id)
            online_seats = [other for other in players if other.is_online]
            if not online_seats:
                await self.store.delete_room(room_id)
                LOGGER.info("Room %s reclaimed: every occupant is offline", room_id)
                return True
            room = await self.store.get_room(room_id)
            if room is not None and room.host_id == self.player_id:
                await self.store.update_room(room_id, host_id=online_seats[0].player_id)
            return True
        except StoreError as exc:
            LOGGER.warning("Failed to update presence in room %s: %s", room_id, exc)
            return False

    async def _compact_seats(self, room_id: str, players: Sequence[RoomPlayer]) -> List[RoomPlayer]:
        # Slots only ever move down, so walking them in order never collides.
        compacted: List[RoomPlayer] = []
        for idx, seat in enumerate(sorted(players, key=lambda item: item.slot)):
            if seat.slot != idx:
                seat = await self.store.update_player(room_id, seat.player_id, slot=idx) or seat
            compacted.append(seat)
        return compacted

    async def _discard_room(self, room_id: str) -> None:
        try:
            await self.store.delete_room(room_id)
        except StoreError as exc:
            LOGGER.error("Failed to clean up room %s: %s", room_id, exc)

    # Game actions ----------------------------------------------------

    async def start_game(self, room_id: str) -> Optional[GameState]:
        try:
            room = await self.store.get_room(room_id)
            if room is None:
                return None
            if room.host_id != self.player_id:
                LOGGER.warning("Only the host can start room %s", room.code)
                return None
            if room.status != RoomStatus.WAITING:
                return None
            players = await self.store.list_players(room_id)
            return await self._deal(room, players)
        except StoreError as exc:
            LOGGER.warning("Failed to start game in room %s: %s", room_id, exc)
            return None

    async def new_game(self, room_id: str) -> Optional[GameState]:
        """Redeal for the online occupants of a finished room."""
        try:
            room = await self.store.get_room(room_id)
            if room is None:
                return None
            if room.host_id != self.player_id:
                LOGGER.warning("Only the host can restart room %s", room.code)
                return None
            if room.status != RoomStatus.FINISHED:
                return None
            players = await self.store.list_players(room_id)
            online = [seat for seat in players if seat.is_online]
            if len(online) < self.config.min_players:
                LOGGER.info("Room %s has %s online players; need %s", room.code, len(online), self.config.min_players)
                return None
            for seat in players:
                if not seat.is_online:
                    await self.store.delete_player(room_id, seat.player_id)
            return await self._deal(room, online)
        except StoreError as exc:
            LOGGER.warning("Failed to restart room %s: %s", room_id, exc)
            return None

    async def _deal(self, room: Room, players: Sequence[RoomPlayer]) -> Optional[GameState]:
        if not self.config.min_players <= len(players) <= self.config.max_seats:
            LOGGER.info(
                "Room %s has %s players; need %s-%s",
                room.code,
                len(players),
                self.config.min_players,
                self.config.max_seats,
            )
            return None
        seats = await self._compact_seats(room.id, players)
        state = advance(initialize_game([seat.player_name for seat in seats]))
        try:
            await self.store.update_room(
                room.id,
                expected_version=room.version,
                game_state=encode_state(state),
                status=status_for(state),
            )
        except StaleWriteError:
            LOGGER.info("Room %s changed while dealing; keeping the stored game", room.code)
            current = await self.store.get_room(room.id)
            if current is None or current.status == RoomStatus.WAITING:
                return None
            return decode_state(current.game_state)
        LOGGER.info("Game started in room %s with %s players", room.code, len(seats))
        return state

    async def reveal_card(self, room_id: str, card_id: str) -> Optional[GameState]:
        def transition(state: GameState, players: List[RoomPlayer]) -> GameState:
            seat = seat_of(players, self.player_id)
            if seat is None:
                return state
            revealed = reveal_card(state, seat.slot, card_id)
            return state if revealed is state else advance(revealed)

        return await self._transact(room_id, transition, "reveal a card")

    async def advance_round(self, room_id: str) -> Optional[GameState]:
        return await self._transact(room_id, lambda state, _: advance(state), "advance the round")

    async def auto_play(self, room_id: str) -> Optional[GameState]:
        """Reveal for offline seats that are holding up the round.

        Only the trigger seat acts, and only on what the store says right now:
        a seat that came back online and revealed in the meantime is left
        alone. Returns the new state, or None when nothing was due.
        """
        applied: List[int] = []

        def transition(state: GameState, players: List[RoomPlayer]) -> GameState:
            applied.clear()
            me = seat_of(players, self.player_id)
            if state.phase != Phase.REVEALING or me is None or trigger_slot(players) != me.slot:
                return state
            updated = state
            for pid in offline_waiting(state, players):
                player = updated.player(pid)
                card = first_hole_card(player) if player else None
                if card is None:
                    continue
                updated = reveal_card(updated, pid, card.id)
                applied.append(pid)
            return state if updated is state else advance(updated)

        result = await self._transact(room_id, transition, "auto-play")
        if not applied or result is None:
            return None
        LOGGER.info("Auto-played for offline slots %s in room %s", applied, room_id)
        return result

    async def _transact(self, room_id: str, transition: Transition, label: str) -> Optional[GameState]:
        for attempt in range(1, self.config.write_attempts + 1):
            try:
                room = await self.store.get_room(room_id)
                if room is None:
                    LOGGER.info("Cannot %s: room %s not found", label, room_id)
                    return None
                state = decode_state(room.game_state)
                if state is None:
                    return None
                players = await self.store.list_players(room_id)
                updated = transition(state, players)
                if updated is state:
                    return state
                written = await self.store.update_room(
                    room_id,
                    expected_version=room.version,
                    game_state=encode_state(updated),
                    status=status_for(updated),
                )
                return updated if written is not None else None
            except StaleWriteError:
                LOGGER.info("Room %s changed under %s (attempt %s); re-reading", room_id, label, attempt)
            except StoreError as exc:
                LOGGER.warning("Failed to %s in room %s: %s", label, room_id, exc)
                return None
        LOGGER.warning("Gave up trying to %s in room %s", label, room_id)
        return None

    # Change feed -----------------------------------------------------

    async def watch(
        self,
        room_id: str,
        on_room: Optional[Callable[[Optional[Room]], Awaitable[None]]] = None,
        on_players: Optional[Callable[[List[RoomPlayer]], Awaitable[None]]] = None,
    ) -> None:
        """Follow a room; also arms auto-play whenever an offline seat is due."""

        async def handle_room(room: Optional[Room]) -> None:
            if room is None:
                self.rooms.pop(room_id, None)
                self._cancel_auto_play(room_id)
            else:
                latest = self.rooms.get(room_id)
                if latest is not None and room.version < latest.version:
                    return
                self.rooms[room_id] = room
            if on_room:
                await on_room(room)
            self._check_auto_play(room_id)

        async def handle_players(players: List[RoomPlayer]) -> None:
            self.players[room_id] = players
            if on_players:
                await on_players(players)
            self._check_auto_play(room_id)

        self._unsubscribers.setdefault(room_id, []).append(
            self.store.subscribe(room_id, handle_room, handle_players)
        )
        room = await self.get_room(room_id)
        await handle_players(await self.get_players(room_id))
        await handle_room(room)

    def unwatch(self, room_id: str) -> None:
        for unsubscribe in self._unsubscribers.pop(room_id, []):
            unsubscribe()
        self.rooms.pop(room_id, None)
        self.players.pop(room_id, None)

    def _check_auto_play(self, room_id: str) -> None:
        room = self.rooms.get(room_id)
        players = self.players.get(room_id)
        if room is None or players is None:
            return
        state = decode_state(room.game_state)
        if state is None or state.phase != Phase.REVEALING:
            return
        me = seat_of(players, self.player_id)
        if me is None or trigger_slot(players) != me.slot:
            return
        if offline_waiting(state, players):
            self.schedule_auto_play(room_id)

    def schedule_auto_play(self, room_id: str) -> asyncio.Task:
        task = self._auto_play_tasks.get(room_id)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(self._delayed_auto_play(room_id))
        self._auto_play_tasks[room_id] = task
        return task

    async def _delayed_auto_play(self, room_id: str) -> Optional[GameState]:
        # Give a reconnecting player the chance to act first.
        await asyncio.sleep(self.config.auto_play_delay_ms / 1000)
        if self._auto_play_tasks.get(room_id) is asyncio.current_task():
            self._auto_play_tasks.pop(room_id, None)
        return await self.auto_play(room_id)

    def _cancel_auto_play(self, room_id: str) -> None:
        task = self._auto_play_tasks.pop(room_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
