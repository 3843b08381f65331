"""
Vector / Force Math
===================

Pure helpers for distances, angles and the force fields exerted by
emitters and flippers. Screen coordinates: Y points down, so an angle of
0 degrees pushes straight up and positive angles lean to the right.
"""

from __future__ import annotations

import math
from typing import Tuple

from pymunk import Vec2d


Point = Tuple[float, float]


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return Vec2d(*a).get_distance(b)


def angle_to(a: Point, b: Point) -> float:
    """Angle in radians of the vector from a to b (atan2(dy, dx))."""
    return math.atan2(b[1] - a[1], b[0] - a[0])


def direction(angle_rad: float) -> Vec2d:
    """Unit vector (cos, sin) for an angle in radians."""
    return Vec2d(math.cos(angle_rad), math.sin(angle_rad))


def falloff_magnitude(
    dist: float,
    radius: float,
    strength: float,
    power: float = 1.0
) -> float:
    """
    Linear radial falloff: full strength at the source, zero at the radius.

    Args:
        dist: Distance from the source to the token.
        radius: Effective radius of the source.
        strength: Base strength at zero distance.
        power: Player/power multiplier.

    Returns:
        Force magnitude, 0.0 when dist >= radius.
    """
    if radius <= 0 or dist >= radius:
        return 0.0
    return (radius - dist) / radius * strength * power


def angled_force(angle_degrees: float, magnitude: float) -> Vec2d:
    """
    Decompose a force along a source angle.

    0 degrees points up the screen (negative Y).
    """
    theta = math.radians(angle_degrees)
    return Vec2d(math.sin(theta) * magnitude, -math.cos(theta) * magnitude)


def radial_force(
    source: Point,
    target: Point,
    radius: float,
    strength: float,
    angle_degrees: float,
    power: float = 1.0,
    base_angle: float = 0.0
) -> Vec2d:
    """
    Force a source exerts on a target point.

    The magnitude falls off with distance; the direction comes from the
    source's angle (base angle plus player offset), not from the geometry.

    Returns:
        Force vector, Vec2d(0, 0) when out of range.
    """
    magnitude = falloff_magnitude(distance(source, target), radius, strength, power)
    if magnitude == 0.0:
        return Vec2d(0.0, 0.0)
    return angled_force(base_angle + angle_degrees, magnitude)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
