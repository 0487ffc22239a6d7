import asyncio

import pytest

from core.game import run_full_game
from core.models import Phase
from rooms.client import RoomClient, offline_waiting, trigger_slot
from rooms.records import RoomConfig, RoomPlayer, RoomStatus
from rooms.store import MemoryRoomStore, StoreError

from .helpers import MIRROR_LABELS, fixed_game, put_game, wait_for

FAST = RoomConfig(auto_play_delay_ms=20)


async def seated_room(names=("Alice", "Bob"), config=FAST, store=None):
    """A waiting room with one client per name; the first one hosts."""
    store = store or MemoryRoomStore(max_seats=config.max_seats)
    clients = [RoomClient(store, f"player-{idx}", config) for idx in range(len(names))]
    room, _ = await clients[0].create_room(names[0])
    for client, name in zip(clients[1:], names[1:]):
        assert await client.join_room(room.code, name) is not None
    return store, room, clients


def test_trigger_slot_is_the_lowest_online_seat():
    seats = [
        RoomPlayer("r", "a", "A", 0, is_online=False),
        RoomPlayer("r", "b", "B", 1),
        RoomPlayer("r", "c", "C", 2),
    ]
    assert trigger_slot(seats) == 1
    assert trigger_slot([RoomPlayer("r", "a", "A", 0, is_online=False)]) is None
    assert offline_waiting(fixed_game(), seats) == [0]


def test_create_and_join_assign_the_lowest_free_slot():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        assert room.host_id == host.player_id
        assert len(room.code) == 6

        seats = await host.get_players(room.id)
        assert [(seat.slot, seat.player_name) for seat in seats] == [(0, "Alice"), (1, "Bob")]

        late = RoomClient(store, "late", FAST)
        seat = await late.join_room(room.code.lower(), "Cara")
        assert seat is not None and seat.slot == 2
        assert await late.join_room("ZZZZZZ", "Cara") is None

    asyncio.run(scenario())


def test_join_rejects_full_rooms():
    async def scenario():
        config = RoomConfig(max_seats=2, auto_play_delay_ms=20)
        store, room, _ = await seated_room(config=config)
        assert await RoomClient(store, "third", config).join_room(room.code, "Cara") is None

    asyncio.run(scenario())


def test_join_after_start_only_reclaims_an_existing_seat():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        assert await host.start_game(room.id) is not None

        assert await RoomClient(store, "late", FAST).join_room(room.code, "Cara") is None

        await guest.set_online(room.id, False)
        seat = await guest.join_room(room.code, "Bob")
        assert seat is not None and seat.slot == 1 and seat.is_online

    asyncio.run(scenario())


def test_leaving_a_waiting_room_hands_over_host_and_deletes_when_empty():
    async def scenario():
        store, room, (host, guest, third) = await seated_room(("Alice", "Bob", "Cara"))

        assert await host.leave_room(room.id)
        current = await store.get_room(room.id)
        assert current.host_id == guest.player_id
        assert [seat.player_id for seat in await store.list_players(room.id)] == [guest.player_id, third.player_id]

        assert await guest.leave_room(room.id)
        assert await third.leave_room(room.id)
        assert await store.get_room(room.id) is None

    asyncio.run(scenario())


def test_start_game_requires_host_and_enough_players():
    async def scenario():
        store = MemoryRoomStore()
        host = RoomClient(store, "host", FAST)
        room, _ = await host.create_room("Alice")
        assert await host.start_game(room.id) is None  # alone

        guest = RoomClient(store, "guest", FAST)
        await guest.join_room(room.code, "Bob")
        assert await guest.start_game(room.id) is None  # not the host

        state = await host.start_game(room.id)
        assert state is not None
        assert state.phase == Phase.REVEALING
        assert state.waiting_for_players
        current = await store.get_room(room.id)
        assert current.status == RoomStatus.PLAYING
        assert await host.start_game(room.id) is None  # already playing

    asyncio.run(scenario())


def test_start_game_closes_gaps_between_seats():
    async def scenario():
        store, room, (host, guest, third) = await seated_room(("Alice", "Bob", "Cara"))
        await guest.leave_room(room.id)

        state = await host.start_game(room.id)

        seats = await store.list_players(room.id)
        assert [(seat.slot, seat.player_name) for seat in seats] == [(0, "Alice"), (1, "Cara")]
        assert [(player.id, player.name) for player in state.players] == [(0, "Alice"), (1, "Cara")]

    asyncio.run(scenario())


def test_reveal_card_writes_only_valid_reveals():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        await put_game(store, room.id, fixed_game())
        version = (await store.get_room(room.id)).version

        unchanged = await guest.reveal_card(room.id, "3c")  # Bob is not waiting
        assert unchanged is not None
        assert (await store.get_room(room.id)).version == version

        state = await host.reveal_card(room.id, "Ah")
        assert state.current_round == 1
        assert state.waiting_for_players == (0,)
        stored = await host.load_state(room.id)
        assert stored == state

    asyncio.run(scenario())


def test_last_reveal_finishes_the_room():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        state = fixed_game()
        await put_game(store, room.id, state)

        clients = {0: host, 1: guest}
        while state.phase == Phase.REVEALING:
            seat = state.waiting_for_players[0]
            card = state.player(seat).hole_cards[0]
            state = await clients[seat].reveal_card(room.id, card.id)

        assert state.phase == Phase.FINISHED
        assert state.winners == (0,)
        assert (await store.get_room(room.id)).status == RoomStatus.FINISHED

    asyncio.run(scenario())


def test_concurrent_reveals_retry_on_stale_writes():
    class InterleavingStore(MemoryRoomStore):
        """Lets another write land between a client's read and its write."""

        def __init__(self):
            super().__init__()
            self.before_write = None

        async def update_room(self, room_id, *, expected_version=None, **changes):
            hook, self.before_write = self.before_write, None
            if hook is not None:
                await hook()
            return await super().update_room(room_id, expected_version=expected_version, **changes)

    async def scenario():
        store, room, (host, guest) = await seated_room(store=InterleavingStore())
        await put_game(store, room.id, fixed_game(MIRROR_LABELS))

        async def guest_reveals():
            await guest.reveal_card(room.id, "3d")

        store.before_write = guest_reveals
        state = await host.reveal_card(room.id, "3h")

        assert state.current_round == 1
        first_round = state.reveal_history[0]
        assert sorted(entry.card.id for entry in first_round.cards) == ["3d", "3h"]
        assert await host.load_state(room.id) == state

    asyncio.run(scenario())


def test_auto_play_reveals_one_card_for_an_offline_seat():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        await put_game(store, room.id, fixed_game())

        # Only the trigger seat may act, and only for offline seats.
        assert await host.auto_play(room.id) is None
        await host.set_online(room.id, False)
        assert (await store.get_room(room.id)).host_id == guest.player_id

        state = await guest.auto_play(room.id)
        assert state is not None
        assert state.current_round == 1
        assert state.reveal_history[0].player_ids == [0]
        assert state.player(0).revealed_hole_cards[0].id == "Ah"

    asyncio.run(scenario())


def test_watching_trigger_seat_plays_for_offline_players_after_the_delay():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        await put_game(store, room.id, fixed_game())
        await guest.watch(room.id)

        await host.set_online(room.id, False)

        async def bob_is_up():
            state = await guest.load_state(room.id)
            return state.current_round == 2 and state.waiting_for_players == (1,)

        assert await wait_for(bob_is_up)
        state = await guest.load_state(room.id)
        assert [event.player_ids for event in state.reveal_history] == [[0], [0]]
        await guest.close()

    asyncio.run(scenario())


def test_room_is_deleted_once_everyone_is_offline():
    async def scenario():
        store, room, (host, guest) = await seated_room()
        await host.start_game(room.id)

        assert await host.leave_room(room.id)  # playing: keeps the seat
        seats = await store.list_players(room.id)
        assert [seat.is_online for seat in seats] == [False, True]

        assert await guest.set_online(room.id, False)
        assert await store.get_room(room.id) is None
        assert await guest.auto_play(room.id) is None

    asyncio.run(scenario())


def test_new_game_drops_offline_seats_and_redeals():
    async def scenario():
        store, room, (host, guest, third) = await seated_room(("Alice", "Bob", "Cara"))
        assert await host.new_game(room.id) is None  # still waiting

        await host.start_game(room.id)
        await guest.set_online(room.id, False)
        finished = run_full_game(await host.load_state(room.id))
        await put_game(store, room.id, finished)
        assert (await store.get_room(room.id)).status == RoomStatus.FINISHED

        assert await guest.new_game(room.id) is None  # not the host
        state = await host.new_game(room.id)

        assert state is not None
        assert [player.name for player in state.players] == ["Alice", "Cara"]
        seats = await store.list_players(room.id)
        assert [(seat.slot, seat.player_name) for seat in seats] == [(0, "Alice"), (1, "Cara")]
        assert (await store.get_room(room.id)).status == RoomStatus.PLAYING

    asyncio.run(scenario())


def test_store_failures_surface_as_none():
    class BrokenStore(MemoryRoomStore):
        async def get_room(self, room_id):
            raise StoreError("connection reset")

    async def scenario():
        store, room, (host, guest) = await seated_room(store=BrokenStore())
        assert await host.start_game(room.id) is None
        assert await host.reveal_card(room.id, "Ah") is None
        assert await host.get_room(room.id) is None
        assert await host.load_state(room.id) is None

    asyncio.run(scenario())


def test_leaving_a_finished_room_with_only_offline_seats_left_deletes_it():
    async def scenario():
        store, room, (host, guest, third) = await seated_room(("Alice", "Bob", "Cara"))
        await host.start_game(room.id)
        await guest.set_online(room.id, False)
        finished = run_full_game(await host.load_state(room.id))
        await put_game(store, room.id, finished)

        assert await host.leave_room(room.id)
        # The host role skips the offline seat.
        assert (await store.get_room(room.id)).host_id == third.player_id

        assert await third.leave_room(room.id)
        assert await store.get_room(room.id) is None
        assert await store.list_players(room.id) == []

    asyncio.run(scenario())


def test_room_config_limits_seats_to_game_size():
    with pytest.raises(ValueError, match="max_seats"):
        RoomConfig(max_seats=6)
    with pytest.raises(ValueError, match="max_seats"):
        RoomConfig(max_seats=1)
    with pytest.raises(ValueError, match="min_players"):
        RoomConfig(max_seats=3, min_players=4)
