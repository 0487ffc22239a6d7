"""Door stud engine primitives shared by the room server and practice mode."""

from .cards import Card, RANKS, SUITS, build_deck, deal, parse_cards, shuffle
from .evaluator import HandCategory, HandResult, evaluate_five, find_best
from .game import (
    advance,
    determine_winner,
    initialize_game,
    reveal_card,
    run_full_game,
    start_round,
)
from .models import DIFFICULTIES, GameState, Phase, Player, RevealEvent, SeatDeal

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal",
    "parse_cards",
    "shuffle",
    "HandCategory",
    "HandResult",
    "evaluate_five",
    "find_best",
    "advance",
    "determine_winner",
    "initialize_game",
    "reveal_card",
    "run_full_game",
    "start_round",
    "DIFFICULTIES",
    "GameState",
    "Phase",
    "Player",
    "RevealEvent",
    "SeatDeal",
]
