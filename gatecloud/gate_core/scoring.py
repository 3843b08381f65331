"""
Scoring System
==============

Point accumulation with a combo multiplier (pinball variant).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from gatecloud.gate_core.config_loader import GameConfig, get_config


REASON_COLLISION = "collision"
REASON_QUBIT = "qubit"
REASON_DUSTBIN = "dustbin"
REASON_TARGET = "target"


@dataclass
class ScoreEvent:
    """Record of a scoring event."""
    points: int
    base_points: int
    multiplier: int
    reason: str

    def __repr__(self) -> str:
        return f"ScoreEvent({self.reason}={self.points}, x{self.multiplier})"


class ComboLedger:
    """
    Tracks score and combo.

    Every award is multiplied by max(1, combo // combo_step):
    - combo 0-9 with step 5: 1x
    - combo 10-14: 2x
    - combo 15-19: 3x

    The combo counts obstacle collisions and drops to zero on a miss.
    When scoring is disabled (deflector variant) awards are ignored but the
    combo is still tracked.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize ledger.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._enabled = config.scoring.enabled
        self._combo_step = config.scoring.combo_step
        self._score: int = 0
        self._combo: int = 0
        self._max_combo: int = 0
        self._history: List[ScoreEvent] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def score(self) -> int:
        """Current total score."""
        return self._score

    @property
    def combo(self) -> int:
        """Consecutive collisions since the last miss."""
        return self._combo

    @property
    def max_combo(self) -> int:
        return self._max_combo

    @property
    def history(self) -> List[ScoreEvent]:
        return list(self._history)

    def multiplier(self, combo: Optional[int] = None) -> int:
        """Current score multiplier."""
        if combo is None:
            combo = self._combo
        return max(1, combo // self._combo_step)

    def award(self, points: int, reason: str = REASON_COLLISION) -> ScoreEvent:
        """
        Add points times the combo multiplier.

        Args:
            points: Base points (negative values are treated as zero).
            reason: What the points are for.

        Returns:
            ScoreEvent describing the points awarded.
        """
        base = max(0, int(points))
        multiplier = self.multiplier()
        awarded = base * multiplier if self._enabled else 0
        event = ScoreEvent(
            points=awarded,
            base_points=base,
            multiplier=multiplier,
            reason=reason
        )
        self._score += awarded
        self._history.append(event)
        return event

    def register_collision(self) -> ScoreEvent:
        """Count a collision in the combo, then award collision points."""
        self._combo += 1
        self._max_combo = max(self._max_combo, self._combo)
        return self.award(self._config.scoring.collision_points, REASON_COLLISION)

    def award_qubit_landing(self, bounce_count: int) -> ScoreEvent:
        scoring = self._config.scoring
        points = scoring.qubit_base + bounce_count * scoring.bonus_per_bounce
        return self.award(points, REASON_QUBIT)

    def award_dustbin(self) -> ScoreEvent:
        return self.award(self._config.scoring.dustbin_points, REASON_DUSTBIN)

    def register_miss(self) -> None:
        """A miss breaks the combo."""
        self._combo = 0

    def reset(self) -> None:
        """Reset score and combo to zero."""
        self._score = 0
        self._combo = 0
        self._max_combo = 0
        self._history.clear()
