from __future__ import annotations

import json
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from core.game import MAX_PLAYERS, MIN_PLAYERS
from core.models import GameState, Phase

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
ROOM_CODE_LENGTH = 6


class RoomStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class RoomConfig:
    max_seats: int = 5
    min_players: int = 2
    auto_play_delay_ms: int = 1_500
    write_attempts: int = 3

    def __post_init__(self) -> None:
        # Seats map one-to-one onto game players.
        if not MIN_PLAYERS <= self.max_seats <= MAX_PLAYERS:
            raise ValueError(f"max_seats must be {MIN_PLAYERS}-{MAX_PLAYERS}, got {self.max_seats}")
        if not MIN_PLAYERS <= self.min_players <= self.max_seats:
            raise ValueError(f"min_players must be {MIN_PLAYERS}-{self.max_seats}, got {self.min_players}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Room:
    code: str
    host_id: str
    id: str = field(default_factory=new_id)
    game_state: Optional[str] = None
    status: RoomStatus = RoomStatus.WAITING
    created_at: datetime = field(default_factory=_now)
    version: int = 0

    def to_payload(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "code": self.code,
            "host_id": self.host_id,
            "game_state": json.loads(self.game_state) if self.game_state else None,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "version": self.version,
        }


@dataclass(frozen=True)
class RoomPlayer:
    room_id: str
    player_id: str
    player_name: str
    slot: int
    id: str = field(default_factory=new_id)
    is_online: bool = True
    joined_at: datetime = field(default_factory=_now)

    def to_payload(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "slot": self.slot,
            "is_online": self.is_online,
            "joined_at": self.joined_at.isoformat(),
        }


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def encode_state(state: GameState) -> str:
    return json.dumps(state.to_payload())


def decode_state(raw: Optional[str]) -> Optional[GameState]:
    if not raw:
        return None
    return GameState.from_payload(json.loads(raw))


def status_for(state: GameState) -> RoomStatus:
    return RoomStatus.FINISHED if state.phase == Phase.FINISHED else RoomStatus.PLAYING
