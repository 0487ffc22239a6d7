from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .cards import Card


class Phase(str, Enum):
    DEALING = "dealing"
    REVEALING = "revealing"
    SHOWDOWN = "showdown"
    FINISHED = "finished"


@dataclass(frozen=True)
class SeatDeal:
    door_count: int = 5
    hole_count: int = 5

    def __post_init__(self) -> None:
        # Door cards alone must form a hand, so the weakest-hand check always works.
        if self.door_count < 5:
            raise ValueError(f"door_count must be at least 5, got {self.door_count}")
        if self.hole_count < 0:
            raise ValueError(f"hole_count must not be negative, got {self.hole_count}")
        if self.door_count + self.hole_count > 10:
            raise ValueError("A seat holds at most 10 cards")


@dataclass(frozen=True)
class Difficulty:
    name: str
    human: SeatDeal
    bots: SeatDeal = SeatDeal()


DIFFICULTIES: Dict[str, Difficulty] = {
    "normal": Difficulty("normal", SeatDeal(5, 5)),
    "hard": Difficulty("hard", SeatDeal(6, 4)),
    "hell": Difficulty("hell", SeatDeal(8, 2)),
    "nightmare": Difficulty("nightmare", SeatDeal(10, 0)),
}


def practice_dealing(difficulty: str, bot_count: int = 4) -> List[SeatDeal]:
    """Seat 0 is the human; the remaining seats are bots."""
    try:
        preset = DIFFICULTIES[difficulty]
    except KeyError:
        raise ValueError(f"Unknown difficulty: {difficulty}") from None
    return [preset.human] + [preset.bots] * bot_count


def _card_payload(card: Card) -> Dict[str, object]:
    return {"id": card.id, "rank": card.rank, "suit": card.suit}


def _card_from_payload(data: Mapping[str, Any]) -> Card:
    return Card(rank=int(data["rank"]), suit=str(data["suit"]), id=str(data.get("id") or ""))


def _cards(items: Any) -> Tuple[Card, ...]:
    return tuple(_card_from_payload(item) for item in items or [])


@dataclass(frozen=True)
class Player:
    id: int
    name: str
    door_cards: Tuple[Card, ...]
    hole_cards: Tuple[Card, ...] = ()
    revealed_hole_cards: Tuple[Card, ...] = ()

    @property
    def visible_cards(self) -> Tuple[Card, ...]:
        return self.door_cards + self.revealed_hole_cards

    @property
    def all_cards(self) -> Tuple[Card, ...]:
        return self.door_cards + self.revealed_hole_cards + self.hole_cards

    def to_payload(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "door_cards": [_card_payload(card) for card in self.door_cards],
            "hole_cards": [_card_payload(card) for card in self.hole_cards],
            "revealed_hole_cards": [_card_payload(card) for card in self.revealed_hole_cards],
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Player":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            door_cards=_cards(data.get("door_cards")),
            hole_cards=_cards(data.get("hole_cards")),
            revealed_hole_cards=_cards(data.get("revealed_hole_cards")),
        )


@dataclass(frozen=True)
class RevealedCard:
    player_id: int
    card: Card


@dataclass(frozen=True)
class RevealEvent:
    round: int
    cards: Tuple[RevealedCard, ...] = ()

    @property
    def player_ids(self) -> List[int]:
        return [entry.player_id for entry in self.cards]

    def to_payload(self) -> Dict[str, object]:
        return {
            "round": self.round,
            "cards": [
                {"player_id": entry.player_id, "card": _card_payload(entry.card)}
                for entry in self.cards
            ],
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "RevealEvent":
        return cls(
            round=int(data["round"]),
            cards=tuple(
                RevealedCard(int(entry["player_id"]), _card_from_payload(entry["card"]))
                for entry in data.get("cards", [])
            ),
        )


@dataclass(frozen=True)
class GameState:
    players: Tuple[Player, ...]
    dead_cards: Tuple[Card, ...] = ()
    phase: Phase = Phase.DEALING
    current_round: int = 0
    reveal_history: Tuple[RevealEvent, ...] = ()
    winners: Optional[Tuple[int, ...]] = None
    waiting_for_players: Tuple[int, ...] = field(default_factory=tuple)

    def player(self, player_id: int) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def winner_players(self) -> List[Player]:
        if self.winners is None:
            return []
        return [player for player in self.players if player.id in self.winners]

    def hole_cards_remaining(self) -> int:
        return sum(len(player.hole_cards) for player in self.players)

    def to_payload(self) -> Dict[str, object]:
        return {
            "players": [player.to_payload() for player in self.players],
            "dead_cards": [_card_payload(card) for card in self.dead_cards],
            "phase": self.phase.value,
            "current_round": self.current_round,
            "reveal_history": [event.to_payload() for event in self.reveal_history],
            "winners": list(self.winners) if self.winners is not None else None,
            "waiting_for_players": list(self.waiting_for_players),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "GameState":
        winners = data.get("winners")
        return cls(
            players=tuple(Player.from_payload(item) for item in data.get("players", [])),
            dead_cards=_cards(data.get("dead_cards")),
            phase=Phase(data.get("phase", Phase.DEALING.value)),
            current_round=int(data.get("current_round", 0)),
            reveal_history=tuple(RevealEvent.from_payload(item) for item in data.get("reveal_history", [])),
            winners=tuple(int(pid) for pid in winners) if winners is not None else None,
            waiting_for_players=tuple(int(pid) for pid in data.get("waiting_for_players", [])),
        )
