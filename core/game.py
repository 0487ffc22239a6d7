from __future__ import annotations

import random
from dataclasses import replace
from typing import List, Optional, Sequence, Union

from .cards import Card, build_deck, deal, find_card, shuffle
from .evaluator import HandResult, find_best
from .models import GameState, Phase, Player, RevealedCard, RevealEvent, SeatDeal

# Round state machine. Every function here is pure: it takes a GameState and
# returns a new one (or the very same object when the call does not apply).
# Persistence, pacing and networking live in rooms/ and practice/.

MIN_PLAYERS = 2
MAX_PLAYERS = 5


def initialize_game(
    player_names: Sequence[str],
    dealing: Optional[Sequence[SeatDeal]] = None,
    *,
    seed: Union[random.Random, int, None] = None,
    deck: Optional[Sequence[Card]] = None,
) -> GameState:
    """Deal a fresh game. Pass ``deck`` to deal a fixed order without shuffling."""
    if not MIN_PLAYERS <= len(player_names) <= MAX_PLAYERS:
        raise ValueError(f"Game requires {MIN_PLAYERS}-{MAX_PLAYERS} players, got {len(player_names)}")
    seats = list(dealing) if dealing is not None else [SeatDeal()] * len(player_names)
    if len(seats) != len(player_names):
        raise ValueError("Dealing config must have one entry per player")

    ordered = list(deck) if deck is not None else shuffle(build_deck(), seed)
    hands, dead = deal(ordered, seats)
    players = tuple(
        Player(id=idx, name=name, door_cards=tuple(door), hole_cards=tuple(hole))
        for idx, (name, (door, hole)) in enumerate(zip(player_names, hands))
    )
    return GameState(
        players=players,
        dead_cards=tuple(dead),
        phase=Phase.REVEALING,
        current_round=0,
        reveal_history=(),
        winners=None,
        waiting_for_players=(),
    )


def current_strength(player: Player) -> HandResult:
    return find_best(player.visible_cards)


def final_strength(player: Player) -> HandResult:
    return find_best(player.all_cards)


def find_weakest_players(state: GameState) -> List[Player]:
    contenders = [player for player in state.players if player.hole_cards]
    if not contenders:
        return []
    strengths = {player.id: current_strength(player).strength for player in contenders}
    weakest = min(strengths.values())
    return [player for player in contenders if strengths[player.id] == weakest]


def start_round(state: GameState) -> GameState:
    if state.phase != Phase.REVEALING or state.waiting_for_players:
        return state
    weakest = find_weakest_players(state)
    if not weakest:
        return replace(state, phase=Phase.SHOWDOWN, waiting_for_players=())
    return replace(state, waiting_for_players=tuple(player.id for player in weakest))


def reveal_card(state: GameState, player_id: int, card_id: str) -> GameState:
    if state.phase != Phase.REVEALING or player_id not in state.waiting_for_players:
        return state
    player = state.player(player_id)
    if player is None:
        return state
    card = find_card(player.hole_cards, card_id)
    if card is None:
        return state

    updated = replace(
        player,
        hole_cards=tuple(c for c in player.hole_cards if c.id != card_id),
        revealed_hole_cards=player.revealed_hole_cards + (card,),
    )
    players = tuple(updated if p.id == player_id else p for p in state.players)

    entry = RevealedCard(player_id=player_id, card=card)
    history = state.reveal_history
    if history and history[-1].round == state.current_round:
        last = history[-1]
        history = history[:-1] + (replace(last, cards=last.cards + (entry,)),)
    else:
        history = history + (RevealEvent(round=state.current_round, cards=(entry,)),)

    waiting = tuple(pid for pid in state.waiting_for_players if pid != player_id)
    next_state = replace(state, players=players, reveal_history=history, waiting_for_players=waiting)
    if waiting:
        return next_state

    # Last pending reveal closes the round.
    phase = Phase.SHOWDOWN if all(not p.hole_cards for p in players) else Phase.REVEALING
    return replace(next_state, current_round=state.current_round + 1, phase=phase)


def determine_winner(state: GameState) -> GameState:
    if state.phase != Phase.SHOWDOWN:
        return state
    strengths = {player.id: final_strength(player).strength for player in state.players}
    best = max(strengths.values())
    winners = tuple(player.id for player in state.players if strengths[player.id] == best)
    return replace(state, phase=Phase.FINISHED, winners=winners, waiting_for_players=())


def advance(state: GameState) -> GameState:
    """Apply every transition that needs no player input."""
    if state.phase == Phase.REVEALING and not state.waiting_for_players:
        state = start_round(state)
    if state.phase == Phase.SHOWDOWN:
        state = determine_winner(state)
    return state


def first_hole_card(player: Player) -> Optional[Card]:
    return player.hole_cards[0] if player.hole_cards else None


def reveal_round(state: GameState) -> GameState:
    """Every waiting player reveals its first hole card."""
    for player_id in state.waiting_for_players:
        player = state.player(player_id)
        card = first_hole_card(player) if player else None
        if card is not None:
            state = reveal_card(state, player_id, card.id)
    return state


def run_full_game(state: GameState) -> GameState:
    state = advance(state)
    while state.phase == Phase.REVEALING:
        state = advance(reveal_round(state))
    return state
