from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

from .cards import RANK_LABEL, Card

MAX_CARDS = 10


class HandCategory(IntEnum):
    HIGH_CARD = 0
    ONE_PAIR = 1
    TWO_PAIR = 2
    THREE_OF_A_KIND = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    FOUR_OF_A_KIND = 7
    STRAIGHT_FLUSH = 8

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class HandResult:
    category: HandCategory
    cards: Tuple[Card, ...]
    kickers: Tuple[int, ...]

    @property
    def strength(self) -> Tuple[int, ...]:
        # Same-category kicker lists have equal length, so plain tuple
        # comparison orders by category first and then kicker by kicker.
        return (int(self.category), *self.kickers)

    def to_payload(self) -> Dict[str, object]:
        return {
            "category": self.category.label,
            "cards": [card.label for card in self.cards],
            "kickers": list(self.kickers),
        }


def evaluate_five(cards: Sequence[Card]) -> HandResult:
    """Classify exactly five cards."""
    if len(cards) != 5:
        raise ValueError(f"Hand must have exactly 5 cards, got {len(cards)}")

    hand = tuple(cards)
    ranks = sorted((card.rank for card in hand), reverse=True)
    is_flush = len({card.suit for card in hand}) == 1
    straight_high = _straight_high(ranks)

    counts: Dict[int, int] = {}
    for rank in ranks:
        counts[rank] = counts.get(rank, 0) + 1
    # Groups ordered by size, then by rank: quads/trips/pairs lead, kickers follow.
    groups = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
    group_ranks = [rank for rank, _ in groups]
    sizes = [size for _, size in groups]

    if straight_high and is_flush:
        return HandResult(HandCategory.STRAIGHT_FLUSH, hand, (straight_high,))
    if sizes[0] == 4:
        return HandResult(HandCategory.FOUR_OF_A_KIND, hand, tuple(group_ranks[:2]))
    if sizes[0] == 3 and sizes[1] == 2:
        return HandResult(HandCategory.FULL_HOUSE, hand, tuple(group_ranks[:2]))
    if is_flush:
        return HandResult(HandCategory.FLUSH, hand, tuple(ranks))
    if straight_high:
        return HandResult(HandCategory.STRAIGHT, hand, (straight_high,))
    if sizes[0] == 3:
        return HandResult(HandCategory.THREE_OF_A_KIND, hand, tuple(group_ranks))
    if sizes[0] == 2 and sizes[1] == 2:
        return HandResult(HandCategory.TWO_PAIR, hand, tuple(group_ranks))
    if sizes[0] == 2:
        return HandResult(HandCategory.ONE_PAIR, hand, tuple(group_ranks))
    return HandResult(HandCategory.HIGH_CARD, hand, tuple(ranks))


def _straight_high(ranks: List[int]) -> Optional[int]:
    """High card of a five-rank straight (descending input), 5 for the wheel."""
    if len(set(ranks)) != 5:
        return None
    if ranks == [14, 5, 4, 3, 2]:
        return 5
    if ranks[0] - ranks[4] == 4:
        return ranks[0]
    return None


def find_best(cards: Sequence[Card]) -> HandResult:
    """Best five-card hand out of 5..10 distinct cards."""
    if not 5 <= len(cards) <= MAX_CARDS:
        raise ValueError(f"Need between 5 and {MAX_CARDS} cards, got {len(cards)}")
    if len({card.id for card in cards}) != len(cards):
        raise ValueError("Cards must be distinct")
    if len(cards) == 5:
        return evaluate_five(cards)

    best: Optional[HandResult] = None
    for combo in itertools.combinations(cards, 5):
        result = evaluate_five(combo)
        if best is None or result.strength > best.strength:
            best = result
    assert best is not None
    return best


def compare_hands(a: HandResult, b: HandResult) -> int:
    if a.strength > b.strength:
        return 1
    if a.strength < b.strength:
        return -1
    return 0


def describe(result: HandResult) -> str:
    kickers = " ".join(RANK_LABEL[rank] for rank in result.kickers)
    return f"{result.category.label} [{kickers}]"
