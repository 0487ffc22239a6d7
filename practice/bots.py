from __future__ import annotations

import random
from typing import Optional

from core.cards import Card
from core.game import first_hole_card
from core.models import GameState

BOT_NAMES = ["CPU 1", "CPU 2", "CPU 3", "CPU 4"]


def baseline_strategy(state: GameState, seat_idx: int, rng: Optional[random.Random] = None) -> Optional[Card]:
    """Pick the hole card a bot reveals.

    Hole cards are face down for their owner too, so there is nothing to
    reason about: without an rng the bot takes its first hole card (already
    random after the shuffle), with one it picks uniformly.
    """
    player = state.player(seat_idx)
    if player is None or not player.hole_cards:
        return None
    if rng is None:
        return first_hole_card(player)
    return rng.choice(player.hole_cards)
