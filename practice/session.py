from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional, Union

from core.evaluator import describe
from core.game import advance, final_strength, initialize_game, reveal_card
from core.models import DIFFICULTIES, GameState, Phase, practice_dealing

from .bots import BOT_NAMES, baseline_strategy

LOGGER = logging.getLogger("practice")

HUMAN_SEAT = 0


class PracticeSession:
    """One human (seat 0) against the house bots, entirely in-process."""

    def __init__(
        self,
        player_name: str,
        difficulty: str = "normal",
        seed: Union[random.Random, int, None] = None,
        bot_delay_ms: int = 800,
    ) -> None:
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty: {difficulty}")
        if not player_name.strip():
            raise ValueError("Player name required")
        self.player_name = player_name.strip()
        self.difficulty = difficulty
        self.rng = seed if isinstance(seed, random.Random) else random.Random(seed)
        self.bot_delay_ms = bot_delay_ms
        self.state: Optional[GameState] = None
        self.games_played = 0

    def start(self) -> GameState:
        dealing = practice_dealing(self.difficulty, len(BOT_NAMES))
        state = initialize_game([self.player_name, *BOT_NAMES], dealing, seed=self.rng)
        self.state = advance(state)
        self.games_played += 1
        LOGGER.info("Practice game %s started (%s)", self.games_played, self.difficulty)
        return self.state

    def _require_state(self) -> GameState:
        if self.state is None:
            raise RuntimeError("Practice game not started")
        return self.state

    @property
    def human_waiting(self) -> bool:
        return HUMAN_SEAT in self._require_state().waiting_for_players

    @property
    def is_finished(self) -> bool:
        return self._require_state().phase == Phase.FINISHED

    def bots_waiting(self) -> List[int]:
        return [seat for seat in self._require_state().waiting_for_players if seat != HUMAN_SEAT]

    def reveal(self, card_id: str) -> GameState:
        state = self._require_state()
        revealed = reveal_card(state, HUMAN_SEAT, card_id)
        if revealed is state:
            return state
        return self._settle(revealed)

    def play_bots(self) -> GameState:
        state = self._require_state()
        for seat in self.bots_waiting():
            card = baseline_strategy(state, seat, self.rng)
            if card is not None:
                state = reveal_card(state, seat, card.id)
        return self._settle(state)

    async def run_bots(self, on_change: Optional[Callable[[GameState], Awaitable[None]]] = None) -> GameState:
        """Let the bots act, pausing between reveals, until the human is up or the game ends."""
        while self.state is not None and self.bots_waiting():
            await asyncio.sleep(self.bot_delay_ms / 1000)
            state = self.play_bots()
            if on_change:
                await on_change(state)
        return self._require_state()

    def _settle(self, state: GameState) -> GameState:
        self.state = advance(state)
        if self.state.phase == Phase.FINISHED:
            names = ", ".join(player.name for player in self.state.winner_players())
            best = final_strength(self.state.winner_players()[0])
            LOGGER.info("Practice game %s won by %s with %s", self.games_played, names, describe(best))
        return self.state
