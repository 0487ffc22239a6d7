"""Room host package: shares door stud games between clients through a store."""

from .client import RoomClient
from .records import Room, RoomConfig, RoomPlayer, RoomStatus
from .server import RoomServer
from .store import ConflictError, MemoryRoomStore, StaleWriteError, StoreError

__all__ = [
    "RoomClient",
    "Room",
    "RoomConfig",
    "RoomPlayer",
    "RoomStatus",
    "RoomServer",
    "ConflictError",
    "MemoryRoomStore",
    "StaleWriteError",
    "StoreError",
]
