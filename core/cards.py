from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from .models import SeatDeal

RANKS = "23456789TJQKA"
SUITS = "hdcs"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS, start=2)}
RANK_LABEL = {value: rank for rank, value in RANK_VALUE.items()}
DECK_SIZE = len(RANKS) * len(SUITS)


@dataclass(frozen=True)
class Card:
    rank: int
    suit: str
    id: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.rank not in RANK_LABEL:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")
        if not self.id:
            object.__setattr__(self, "id", self.label)

    @property
    def label(self) -> str:
        return f"{RANK_LABEL[self.rank]}{self.suit}"


def build_deck() -> List[Card]:
    """All 52 cards in a fixed order (deuces first, suits in SUITS order)."""
    return [Card(RANK_VALUE[rank], suit) for rank in RANKS for suit in SUITS]


def shuffle(deck: Sequence[Card], rng: Union[random.Random, int, None] = None) -> List[Card]:
    # random.shuffle is Fisher-Yates over randbelow, so no modulo bias.
    if not isinstance(rng, random.Random):
        rng = random.Random(rng)
    shuffled = list(deck)
    rng.shuffle(shuffled)
    return shuffled


def draw(deck: List[Card], count: int) -> List[Card]:
    if len(deck) < count:
        raise ValueError("Not enough cards left in deck")
    cards = deck[:count]
    del deck[:count]
    return cards


def deal(
    deck: Sequence[Card],
    seats: Sequence["SeatDeal"],
) -> Tuple[List[Tuple[List[Card], List[Card]]], List[Card]]:
    """Split ``deck`` into (door, hole) groups per seat; leftovers are dead cards."""
    required = sum(seat.door_count + seat.hole_count for seat in seats)
    if required > DECK_SIZE:
        raise ValueError(f"Dealing config needs {required} cards, a deck has {DECK_SIZE}")
    if len({card.id for card in deck}) != len(deck):
        raise ValueError("Deck contains duplicate card ids")

    remaining = list(deck)
    if required > len(remaining):
        raise ValueError(f"Dealing config needs {required} cards, deck holds {len(remaining)}")
    hands: List[Tuple[List[Card], List[Card]]] = []
    for seat in seats:
        door = draw(remaining, seat.door_count)
        hole = draw(remaining, seat.hole_count)
        hands.append((door, hole))
    return hands, remaining


def cards_to_labels(cards: Sequence[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    rank_char, suit = label[0].upper(), label[1].lower()
    if rank_char not in RANK_VALUE:
        raise ValueError(f"Invalid rank: {label[0]}")
    return Card(RANK_VALUE[rank_char], suit)


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]


def find_card(cards: Sequence[Card], card_id: str) -> Optional[Card]:
    for card in cards:
        if card.id == card_id:
            return card
    return None
