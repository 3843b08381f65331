"""
Game Rules
==========

Handles spawn timing and positioning, and the end-of-game condition.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from gatecloud.gate_core.config_loader import GameConfig, get_config


@dataclass
class TerminationResult:
    """Result of termination check."""
    terminated: bool
    reason: str

    @staticmethod
    def none() -> "TerminationResult":
        return TerminationResult(False, "")

    @staticmethod
    def game_over(reason: str) -> "TerminationResult":
        return TerminationResult(True, reason)


class SpawnRules:
    """
    Spawn timer and spawn position.

    The timer compares wall-clock timestamps supplied by the game; a token
    is due once strictly more than the interval has elapsed since the last
    spawn (or since the game started).
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize spawn rules.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._interval = config.spawn.interval_seconds
        self._shift_on_resume = config.spawn.resume_shifts_timer
        self._center_x = config.board.spawn_center_x
        self._spread = config.board.spawn_spread
        self._spawn_y = config.board.spawn_y

        self._last_spawn_time: float = 0.0
        self._paused_at: Optional[float] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def spawn_y(self) -> float:
        """Y coordinate for spawning."""
        return self._spawn_y

    @property
    def last_spawn_time(self) -> float:
        return self._last_spawn_time

    def spawn_x(self, rng: random.Random) -> float:
        """Randomized X around the gate cloud center."""
        return self._center_x + (rng.random() - 0.5) * self._spread

    def restart(self, now: float) -> None:
        """Start the timer from now (new game)."""
        self._last_spawn_time = now
        self._paused_at = None

    def is_due(self, now: float) -> bool:
        return now - self._last_spawn_time > self._interval

    def mark_spawned(self, now: float) -> None:
        self._last_spawn_time = now

    def pause(self, now: float) -> None:
        self._paused_at = now

    def resume(self, now: float) -> None:
        """
        Continue after a pause.

        By default the baseline is left alone, so a long pause makes the next
        token due immediately. With resume_shifts_timer the paused time is
        added to the baseline instead.
        """
        if self._shift_on_resume and self._paused_at is not None:
            self._last_spawn_time += now - self._paused_at
        self._paused_at = None


class TerminationRules:
    """
    End-of-game detection.

    The game ends once the gate queue is exhausted and no token is still
    falling. The transition is reported exactly once per session.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        if config is None:
            config = get_config()

        self._config = config
        self._ended: bool = False

    @property
    def ended(self) -> bool:
        return self._ended

    def reset(self) -> None:
        """Reset termination state."""
        self._ended = False

    def check_termination(
        self,
        queue_exhausted: bool,
        active_tokens: int
    ) -> TerminationResult:
        """
        Check the end-of-game condition.

        Args:
            queue_exhausted: True if every gate has been spawned.
            active_tokens: Number of tokens still falling.

        Returns:
            TerminationResult, terminated only on the first qualifying call.
        """
        if self._ended:
            return TerminationResult.none()
        if queue_exhausted and active_tokens == 0:
            self._ended = True
            return TerminationResult.game_over("all_gates_processed")
        return TerminationResult.none()


class GameRules:
    """
    Combined interface for all game rules.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize game rules.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self.spawn = SpawnRules(config)
        self.termination = TerminationRules(config)

    def reset(self) -> None:
        """Reset all rule state."""
        self.termination.reset()
