"""
Entity Model
============

State records for falling tokens, target zones, force sources and
obstacles. Entities carry integer/string handles only; the presentation
layer maps handles to visuals.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pymunk import Vec2d

from gatecloud.gate_core.config_loader import ForceSourceConfig
from gatecloud.gate_core.quantum_rules import fold_gates, display_label, QubitState
from gatecloud.gate_core.vector_math import clamp


OBSTACLE_DEFLECTOR = "deflector"
OBSTACLE_BLOCK = "block"

WALL_LEFT = "left"
WALL_RIGHT = "right"


@dataclass
class FallingToken:
    """A falling gate token."""
    uid: int
    gate: str
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    radius: float = 20.0
    deflected: bool = False              # Deflector variant: one deflection ever
    bounce_count: int = 0                # Pinball: obstacle hits so far
    last_hit: Optional[str] = None       # Pinball: obstacle id hit last

    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def velocity(self) -> Vec2d:
        return Vec2d(self.vx, self.vy)

    @velocity.setter
    def velocity(self, value: Tuple[float, float]) -> None:
        self.vx, self.vy = float(value[0]), float(value[1])

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "gate": self.gate,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "radius": self.radius,
            "deflected": self.deflected,
            "bounce_count": self.bounce_count,
        }


@dataclass(frozen=True)
class Span:
    """Horizontal extent of a zone. Bounds are inclusive."""
    left: float
    right: float

    @property
    def width(self) -> float:
        return self.right - self.left

    def contains(self, x: float) -> bool:
        # Degenerate spans never match
        if self.width <= 0:
            return False
        return self.left <= x <= self.right


@dataclass
class QubitZone:
    """
    A qubit target zone.

    The display state is derived from the gate sequence on every access;
    only the sequence is stored.
    """
    id: str
    gates: List[str] = field(default_factory=list)
    span: Optional[Span] = None

    @property
    def numeric_state(self) -> float:
        return fold_gates(self.gates)

    @property
    def state(self) -> QubitState:
        return QubitState.from_value(self.numeric_state)

    @property
    def label(self) -> str:
        return display_label(self.gates)

    def apply(self, gate: str) -> str:
        """Append a gate and return the new display label."""
        self.gates.append(gate)
        return self.label

    def reset(self) -> None:
        self.gates.clear()


@dataclass
class Dustbin:
    """Discard zone for unwanted gates."""
    id: str = "dustbin"
    gates: List[str] = field(default_factory=list)
    count: int = 0
    span: Optional[Span] = None

    def dispose(self, gate: str) -> None:
        self.gates.append(gate)
        self.count += 1

    def reset(self) -> None:
        self.gates.clear()
        self.count = 0


@dataclass
class ForceSource:
    """
    A player-controlled emitter (deflector variant) or flipper (pinball).

    ``angle`` is the player offset in degrees; flippers add ``base_angle``.
    """
    id: str
    x: float
    y: float
    radius: float
    strength: float
    power: float = 1.0
    base_angle: float = 0.0
    min_angle: float = -90.0
    max_angle: float = 90.0
    angle: float = 0.0
    active: bool = False

    @classmethod
    def from_config(cls, config: ForceSourceConfig) -> "ForceSource":
        return cls(
            id=config.id,
            x=config.x,
            y=config.y,
            radius=config.radius,
            strength=config.strength,
            power=config.power,
            base_angle=config.base_angle,
            min_angle=config.min_angle,
            max_angle=config.max_angle,
        )

    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def effective_angle(self) -> float:
        return self.base_angle + self.angle

    def set_angle(self, degrees: float) -> float:
        """Set the player angle, clamped to the slider range."""
        self.angle = clamp(float(degrees), self.min_angle, self.max_angle)
        return self.angle

    def reset(self) -> None:
        self.angle = 0.0
        self.active = False


@dataclass
class Obstacle:
    """A circular collidable: the central deflector or a gate block."""
    id: str
    kind: str
    x: float
    y: float
    radius: float
    tag: Optional[str] = None     # Behavior tag (gate label) for blocks
    hits: int = 0

    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def type_name(self) -> str:
        """Obstacle type reported in collision events."""
        return self.tag if self.tag else self.kind


@dataclass(frozen=True)
class Wall:
    """A vertical boundary. ``x`` is the face tokens bounce off."""
    id: str
    x: float
    side: str

    def penetration(self, token: FallingToken) -> bool:
        if self.side == WALL_LEFT:
            return token.x - token.radius < self.x
        return token.x + token.radius > self.x

    def clamp_position(self, token: FallingToken) -> None:
        if self.side == WALL_LEFT:
            token.x = self.x + token.radius
        else:
            token.x = self.x - token.radius
