"""
Tests for the collision and deflection engine.
"""

import math
import random

import pytest

from gatecloud.gate_core.collision import CollisionEngine
from gatecloud.gate_core.config_loader import load_config
from gatecloud.gate_core.entities import (
    OBSTACLE_BLOCK,
    OBSTACLE_DEFLECTOR,
    WALL_LEFT,
    WALL_RIGHT,
    FallingToken,
    ForceSource,
    Obstacle,
    Wall,
)
from gatecloud.gate_core.scoring import ComboLedger


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def pinball_config():
    return load_config(variant="pinball")


@pytest.fixture
def engine(config):
    return CollisionEngine(config, rng=random.Random(1))


@pytest.fixture
def ledger(pinball_config):
    return ComboLedger(pinball_config)


@pytest.fixture
def pinball(pinball_config, ledger):
    return CollisionEngine(pinball_config, rng=random.Random(1), ledger=ledger)


def make_block(tag=None, x=100.0, y=100.0, radius=30.0, block_id="block"):
    return Obstacle(id=block_id, kind=OBSTACLE_BLOCK, x=x, y=y, radius=radius, tag=tag)


class TestStepOrder:
    """Gravity, integration and damping."""

    def test_free_fall(self, engine, config):
        token = FallingToken(uid=0, gate="X", x=10, y=10)
        engine.step_token(token, [])
        assert token.vy == pytest.approx(config.physics.gravity)
        assert token.y == pytest.approx(10 + config.physics.gravity)
        assert token.vx == 0.0

    def test_pinball_damping_after_integration(self, pinball, pinball_config):
        token = FallingToken(uid=0, gate="X", x=400, y=10, vx=2.0, radius=15)
        pinball.step_token(token, [])
        # Position used the undamped velocity
        assert token.x == pytest.approx(402.0)
        assert token.vx == pytest.approx(2.0 * 0.995)
        assert token.vy == pytest.approx(pinball_config.physics.gravity * 0.998)


class TestDeflectorVariant:
    """One deflection per token, ever."""

    def test_deflection_sets_velocity(self, engine, config):
        engine.set_layout([Obstacle("d", OBSTACLE_DEFLECTOR, 100, 100, 75)], [])
        token = FallingToken(uid=0, gate="X", x=100, y=180, vx=3.0, vy=4.0)

        report = engine.step_token(token, [])

        assert token.deflected
        assert len(report.collisions) == 1
        hit = report.collisions[0]
        assert hit.obstacle_id == "d"
        assert hit.obstacle_type == OBSTACLE_DEFLECTOR
        # Straight down away from the deflector, previous velocity discarded
        assert token.vx == pytest.approx(0.0, abs=1e-9)
        assert token.vy == pytest.approx(config.physics.deflection_force)

    def test_no_second_deflection(self, engine):
        engine.set_layout([Obstacle("d", OBSTACLE_DEFLECTOR, 100, 100, 75)], [])
        token = FallingToken(uid=0, gate="X", x=100, y=180)
        engine.step_token(token, [])
        vy = token.vy

        report = engine.step_token(token, [])

        assert report.collisions == []
        assert token.vy == pytest.approx(vy + 0.3)

    def test_no_collision_out_of_reach(self, engine):
        engine.set_layout([Obstacle("d", OBSTACLE_DEFLECTOR, 100, 100, 75)], [])
        token = FallingToken(uid=0, gate="X", x=100, y=196)
        report = engine.step_token(token, [])
        assert report.collisions == []
        assert not token.deflected

    def test_empty_snapshot(self, engine):
        token = FallingToken(uid=0, gate="X", x=100, y=100)
        report = engine.step_token(token, [])
        assert report.collisions == []


class TestBehaviorTags:
    """Tag-specific deflection responses."""

    @pytest.mark.parametrize("tag,scale", [(None, 1.0), ("X", 1.2), ("P", 0.8), ("M", 0.6)])
    def test_force_scaling(self, pinball, pinball_config, tag, scale):
        block = make_block(tag)
        token = FallingToken(uid=0, gate="X", x=140, y=100, radius=15)
        vx, vy = pinball.deflect(token, block)
        assert vx == pytest.approx(pinball_config.physics.deflection_force * scale)
        assert vy == pytest.approx(0.0, abs=1e-9)

    def test_z_keeps_speed_and_rotates(self, pinball):
        block = make_block("Z")
        token = FallingToken(uid=0, gate="X", x=100, y=140, vx=0.0, vy=3.0, radius=15)
        vx, vy = pinball.deflect(token, block)
        assert math.hypot(vx, vy) == pytest.approx(3.0)
        # Straight down (90 deg) turned to 135 deg
        assert math.degrees(math.atan2(vy, vx)) == pytest.approx(135.0)

    def test_h_scatter_bounded(self, pinball, pinball_config):
        block = make_block("H")
        force = pinball_config.physics.deflection_force
        for _ in range(50):
            token = FallingToken(uid=0, gate="X", x=140, y=100, radius=15)
            vx, vy = pinball.deflect(token, block)
            assert force - 1.5 <= vx <= force + 1.5
            assert -1.5 <= vy <= 1.5

    def test_cnot_keeps_magnitude_within_spread(self, pinball, pinball_config):
        block = make_block("CNOT")
        for _ in range(50):
            token = FallingToken(uid=0, gate="X", x=140, y=100, radius=15)
            vx, vy = pinball.deflect(token, block)
            assert math.hypot(vx, vy) == pytest.approx(pinball_config.physics.deflection_force)
            assert abs(math.degrees(math.atan2(vy, vx))) <= 90.0 + 1e-9

    def test_seeded_jitter_reproducible(self, pinball_config):
        block = make_block("CNOT")
        results = []
        for _ in range(2):
            engine = CollisionEngine(pinball_config, rng=random.Random(7))
            token = FallingToken(uid=0, gate="X", x=140, y=100, radius=15)
            results.append([engine.deflect(token, block) for _ in range(5)])
        assert results[0] == results[1]


class TestPinballCollisions:
    """Re-triggerable collisions, combo and hit counters."""

    def test_collision_side_effects(self, pinball, ledger, pinball_config):
        block = make_block("X")
        pinball.set_layout([block], [])
        token = FallingToken(uid=0, gate="X", x=100, y=140, radius=15)

        report = pinball.step_token(token, [])

        assert len(report.collisions) == 1
        assert report.collisions[0].obstacle_type == "X"
        assert token.bounce_count == 1
        assert token.last_hit == "block"
        assert block.hits == 1
        assert ledger.combo == 1
        assert ledger.score == pinball_config.scoring.collision_points

    def test_same_block_suppressed_while_overlapping(self, pinball):
        block = make_block()
        pinball.set_layout([block], [])
        token = FallingToken(uid=0, gate="X", x=100, y=110, radius=15)

        pinball.step_token(token, [])
        report = pinball.step_token(token, [])

        assert report.collisions == []
        assert token.bounce_count == 1
        assert block.hits == 1

    def test_last_hit_clears_after_leaving(self, pinball):
        block = make_block()
        pinball.set_layout([block], [])
        token = FallingToken(uid=0, gate="X", x=100, y=140, radius=15)

        pinball.step_token(token, [])
        assert token.last_hit == "block"
        pinball.step_token(token, [])
        assert token.last_hit is None

    def test_other_block_can_hit_immediately(self, pinball):
        a = make_block(block_id="a", x=100, y=100)
        b = make_block(block_id="b", x=100, y=150)
        pinball.set_layout([a, b], [])
        token = FallingToken(uid=0, gate="X", x=100, y=125, radius=15)

        pinball.step_token(token, [])
        pinball.step_token(token, [])

        assert a.hits + b.hits == 2
        assert token.bounce_count == 2

    def test_hits_survive_new_snapshot(self, pinball):
        block = make_block()
        block.hits = 4
        pinball.set_layout([block], [])
        pinball.set_layout([make_block(), make_block(block_id="new")], [])
        hits = {o.id: o.hits for o in pinball.obstacles}
        assert hits == {"block": 4, "new": 0}

    def test_stale_last_hit_is_dropped(self, pinball):
        pinball.set_layout([make_block()], [])
        token = FallingToken(uid=0, gate="X", x=100, y=140, radius=15)
        pinball.step_token(token, [])
        pinball.set_layout([], [])
        pinball.step_token(token, [])
        assert token.last_hit is None


class TestWalls:
    """Vertical wall bounces (pinball)."""

    def test_left_wall_bounce(self, pinball):
        pinball.set_layout([], [Wall("l", 40.0, WALL_LEFT)])
        token = FallingToken(uid=0, gate="X", x=50, y=100, vx=-4.0, radius=15)

        report = pinball.step_token(token, [])

        assert len(report.wall_bounces) == 1
        assert report.wall_bounces[0].position[0] == pytest.approx(55.0)
        assert token.x == pytest.approx(55.0 + 2.8)
        assert token.vx == pytest.approx(2.8 * 0.995)

    def test_right_wall_bounce(self, pinball):
        pinball.set_layout([], [Wall("r", 760.0, WALL_RIGHT)])
        token = FallingToken(uid=0, gate="X", x=750, y=100, vx=5.0, radius=15)
        pinball.step_token(token, [])
        assert token.vx < 0
        assert token.x <= 745.0

    def test_walls_ignored_in_deflector_variant(self, engine):
        engine.set_layout([], [Wall("l", 40.0, WALL_LEFT)])
        token = FallingToken(uid=0, gate="X", x=30, y=100, vx=-4.0)
        report = engine.step_token(token, [])
        assert report.wall_bounces == []
        assert token.vx == -4.0


class TestForceSources:
    """Emitter and flipper forces."""

    def make_source(self, **kwargs):
        defaults = dict(id="e", x=0.0, y=0.0, radius=200.0, strength=0.5, active=True)
        defaults.update(kwargs)
        return ForceSource(**defaults)

    def test_active_source_in_range(self, engine):
        token = FallingToken(uid=0, gate="X", x=0, y=100)
        engine.apply_forces(token, [self.make_source()])
        assert token.vx == pytest.approx(0.0, abs=1e-12)
        assert token.vy == pytest.approx(-0.25)

    def test_inactive_source_contributes_nothing(self, engine):
        token = FallingToken(uid=0, gate="X", x=0, y=100)
        engine.apply_forces(token, [self.make_source(active=False)])
        assert (token.vx, token.vy) == (0.0, 0.0)

    def test_out_of_range_contributes_nothing(self, engine):
        token = FallingToken(uid=0, gate="X", x=0, y=250)
        engine.apply_forces(token, [self.make_source()])
        assert (token.vx, token.vy) == (0.0, 0.0)

    def test_sources_accumulate(self, engine):
        token = FallingToken(uid=0, gate="X", x=0, y=100, vx=1.0)
        sources = [self.make_source(id="a", angle=90), self.make_source(id="b", angle=90)]
        engine.apply_forces(token, sources)
        assert token.vx == pytest.approx(1.5)

    def test_power_scales(self, engine):
        token = FallingToken(uid=0, gate="X", x=0, y=100)
        engine.apply_forces(token, [self.make_source(power=2.0)])
        assert token.vy == pytest.approx(-0.5)

    def test_set_angle_clamped(self):
        source = self.make_source(min_angle=-45, max_angle=45)
        assert source.set_angle(80) == 45
        assert source.set_angle(-80) == -45
