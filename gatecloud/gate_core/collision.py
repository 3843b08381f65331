"""
Collision & Deflection Engine
=============================

Per-frame physics for falling tokens: gravity, obstacle deflection, wall
bounces, force sources, integration and air resistance, always in that
order.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from gatecloud.gate_core.config_loader import GameConfig, get_config
from gatecloud.gate_core.entities import (
    FallingToken,
    ForceSource,
    Obstacle,
    Wall,
)
from gatecloud.gate_core.scoring import ComboLedger, ScoreEvent
from gatecloud.gate_core.vector_math import direction, distance, radial_force

logger = logging.getLogger(__name__)

# Force multipliers per behavior tag
TAG_FORCE_SCALE: Dict[str, float] = {
    "X": 1.2,   # strong direct bounce
    "P": 0.8,   # gentle phase kick
    "M": 0.6,   # absorptive measurement
}


@dataclass
class CollisionResult:
    """A token hitting an obstacle."""
    token_uid: int
    obstacle_id: str
    obstacle_type: str
    position: Tuple[float, float]
    velocity: Tuple[float, float]
    score_event: Optional[ScoreEvent] = None


@dataclass
class WallBounce:
    """A token bouncing off a wall."""
    token_uid: int
    wall_id: str
    position: Tuple[float, float]


@dataclass
class StepReport:
    """Everything that happened to the tokens during one physics step."""
    collisions: List[CollisionResult] = field(default_factory=list)
    wall_bounces: List[WallBounce] = field(default_factory=list)


class CollisionEngine:
    """
    Moves tokens and resolves their contacts.

    Holds the current obstacle/wall snapshot; the game replaces it whenever
    the presentation layer reports a new layout.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
        ledger: Optional[ComboLedger] = None
    ):
        """
        Initialize collision engine.

        Args:
            config: Game configuration. Uses default if None.
            rng: Random source for scatter/entanglement jitter.
            ledger: Combo ledger credited on every collision (pinball).
        """
        if config is None:
            config = get_config()

        self._config = config
        self._physics = config.physics
        self._pinball = config.is_pinball
        self._rng = rng if rng is not None else random.Random()
        self._ledger = ledger
        self._obstacles: List[Obstacle] = []
        self._walls: List[Wall] = []

    @property
    def obstacles(self) -> List[Obstacle]:
        return self._obstacles

    @property
    def walls(self) -> List[Wall]:
        return self._walls

    @property
    def rng(self) -> random.Random:
        return self._rng

    @rng.setter
    def rng(self, value: random.Random) -> None:
        self._rng = value

    def set_layout(self, obstacles: Iterable[Obstacle], walls: Iterable[Wall]) -> None:
        """
        Replace the obstacle and wall snapshot.

        Hit counters carry over for obstacles that keep their id.
        """
        previous = {o.id: o.hits for o in self._obstacles}
        self._obstacles = list(obstacles)
        for obstacle in self._obstacles:
            obstacle.hits = max(obstacle.hits, previous.get(obstacle.id, 0))
        self._walls = list(walls)

    def reset_hits(self) -> None:
        for obstacle in self._obstacles:
            obstacle.hits = 0

    def step(
        self,
        tokens: Iterable[FallingToken],
        sources: Iterable[ForceSource]
    ) -> StepReport:
        """
        Advance every token by one frame.

        Args:
            tokens: Active tokens.
            sources: All force sources (inactive ones are skipped).

        Returns:
            StepReport of collisions and wall bounces.
        """
        report = StepReport()
        sources = list(sources)
        for token in tokens:
            self.step_token(token, sources, report)
        return report

    def step_token(
        self,
        token: FallingToken,
        sources: Iterable[ForceSource],
        report: Optional[StepReport] = None
    ) -> StepReport:
        """Advance one token by one frame."""
        if report is None:
            report = StepReport()

        # 1. gravity
        token.vy += self._physics.gravity

        # 2. obstacles, then walls
        hit = self._check_obstacles(token)
        if hit is not None:
            report.collisions.append(hit)
        if self._pinball:
            report.wall_bounces.extend(self._check_walls(token))

        # 3. force sources
        self.apply_forces(token, sources)

        # 4. integration
        token.x += token.vx
        token.y += token.vy

        # 5. air resistance
        token.vx *= self._physics.damping_x
        token.vy *= self._physics.damping_y

        return report

    def apply_forces(self, token: FallingToken, sources: Iterable[ForceSource]) -> None:
        """Accumulate the force of every active source in range."""
        for source in sources:
            if not source.active:
                continue
            force = radial_force(
                source.position,
                token.position,
                source.radius,
                source.strength,
                source.angle,
                power=source.power,
                base_angle=source.base_angle
            )
            token.vx += force.x
            token.vy += force.y

    def overlaps(self, token: FallingToken, obstacle: Obstacle) -> bool:
        return distance(token.position, obstacle.position) < token.radius + obstacle.radius

    def _check_obstacles(self, token: FallingToken) -> Optional[CollisionResult]:
        """Find and resolve at most one obstacle collision for this frame."""
        if not self._pinball:
            if token.deflected:
                return None
            for obstacle in self._obstacles:
                if self.overlaps(token, obstacle):
                    token.deflected = True
                    return self._resolve(token, obstacle)
            return None

        # Pinball: forget the last hit once the token has left it
        if token.last_hit is not None:
            last = self._find(token.last_hit)
            if last is None or not self.overlaps(token, last):
                token.last_hit = None

        for obstacle in self._obstacles:
            if obstacle.id == token.last_hit:
                continue
            if self.overlaps(token, obstacle):
                token.last_hit = obstacle.id
                token.bounce_count += 1
                return self._resolve(token, obstacle)
        return None

    def _find(self, obstacle_id: str) -> Optional[Obstacle]:
        for obstacle in self._obstacles:
            if obstacle.id == obstacle_id:
                return obstacle
        return None

    def _resolve(self, token: FallingToken, obstacle: Obstacle) -> CollisionResult:
        """Set the token's velocity away from the obstacle."""
        token.velocity = self.deflect(token, obstacle)
        obstacle.hits += 1

        score_event = None
        if self._pinball and self._ledger is not None:
            score_event = self._ledger.register_collision()

        logger.debug(
            "Token %d (%s) hit %s at (%.1f, %.1f)",
            token.uid, token.gate, obstacle.id, token.x, token.y
        )
        return CollisionResult(
            token_uid=token.uid,
            obstacle_id=obstacle.id,
            obstacle_type=obstacle.type_name,
            position=token.position,
            velocity=(token.vx, token.vy),
            score_event=score_event
        )

    def deflect(self, token: FallingToken, obstacle: Obstacle) -> Tuple[float, float]:
        """
        Deflection velocity for a token touching an obstacle.

        The base response points from the obstacle center to the token
        center with the configured deflection force; the obstacle's
        behavior tag then shapes it.
        """
        angle = math.atan2(token.y - obstacle.y, token.x - obstacle.x)
        force = self._physics.deflection_force
        tag = obstacle.tag

        if tag == "Z":
            # Spin: keep speed, turn the outgoing direction
            spun = direction(angle + math.radians(self._physics.z_spin_degrees)) * token.speed
            return spun.x, spun.y

        if tag == "CNOT":
            spread = self._physics.cnot_spread_degrees
            angle += math.radians(self._rng.uniform(-spread, spread))

        velocity = direction(angle) * (force * TAG_FORCE_SCALE.get(tag, 1.0))

        if tag == "H":
            jitter = self._physics.jitter
            return (
                velocity.x + self._rng.uniform(-jitter, jitter),
                velocity.y + self._rng.uniform(-jitter, jitter),
            )
        return velocity.x, velocity.y

    def _check_walls(self, token: FallingToken) -> List[WallBounce]:
        bounces = []
        for wall in self._walls:
            if wall.penetration(token):
                wall.clamp_position(token)
                token.vx = -token.vx * self._physics.wall_bounciness
                bounces.append(WallBounce(token.uid, wall.id, token.position))
        return bounces
