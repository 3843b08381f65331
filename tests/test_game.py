"""
Tests for the game orchestrator: session lifecycle, spawning, landing,
events and layout updates.
"""

import dataclasses

import pytest

from gatecloud.gate_core.commands import CMD_SET_FORCE_ACTIVE, Command
from gatecloud.gate_core.config_loader import load_config
from gatecloud.gate_core.events import (
    EVENT_COLLISION,
    EVENT_GAME_ENDED,
    EVENT_STATE_CHANGED,
    EVENT_TARGET_CHECK,
    EVENT_TOKEN_SPAWNED,
    EVENT_ZONE_LANDED,
)
from gatecloud.gate_core.game import GateCloudGame, SessionState

FRAME = 0.05

# One qubit across the whole board, nothing in the way
OPEN_LAYOUT = [
    {"id": "qubit1", "type": "qubit", "x": 0, "y": 600, "width": 1200, "height": 100},
]


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def pinball_config():
    return load_config(variant="pinball")


def open_game(config, gates, seed=1):
    game = GateCloudGame(config, seed=seed, gates=gates)
    game.provide_layout(OPEN_LAYOUT)
    game.start()
    return game


def kinds(events):
    return [e.kind for e in events]


class TestLifecycle:
    """Start, pause, resume and reset."""

    def test_initial_state(self, config):
        game = GateCloudGame(config, seed=1)
        assert game.state == SessionState.STOPPED
        assert game.frame == 0
        assert game.zone_labels() == {"qubit1": "|0⟩"}

    def test_stopped_tick_does_nothing(self, config):
        game = GateCloudGame(config, seed=1)
        result = game.tick(5.0)
        assert result.frame == 0
        assert game.tokens == []

    def test_commands_apply_on_next_tick(self, config):
        game = GateCloudGame(config, seed=1)
        game.start()
        game.set_force_angle("emitter1", 30)
        assert game.state == SessionState.STOPPED
        assert game.get_force_source("emitter1").angle == 0.0
        assert game.pending_commands == 2

        game.tick(0.0)

        assert game.state == SessionState.RUNNING
        assert game.get_force_source("emitter1").angle == 30.0
        assert game.pending_commands == 0

    def test_force_angle_clamped(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        game.set_force_angle("flipper_left", 90)
        game.set_force_active("flipper_left", True)
        game.tick(0.0)
        source = game.get_force_source("flipper_left")
        assert source.angle == 45.0
        assert source.active

    def test_unknown_force_source_raises_when_queued(self, config):
        game = GateCloudGame(config, seed=1)
        with pytest.raises(KeyError):
            game.set_force_active("nope", True)
        with pytest.raises(KeyError):
            game.set_force_angle("nope", 10)
        with pytest.raises(KeyError):
            game.submit(Command(CMD_SET_FORCE_ACTIVE, {"source_id": "nope", "active": True}))
        assert game.pending_commands == 0

    def test_rejected_command_does_not_drop_others(self, config):
        game = GateCloudGame(config, seed=1)
        with pytest.raises(KeyError):
            game.set_force_active("nope", True)
        game.start()
        game.set_force_active("emitter2", True)

        game.tick(0.0)

        assert game.state == SessionState.RUNNING
        assert game.get_force_source("emitter2").active

    def test_pause_freezes_simulation(self, config):
        game = open_game(config, ["X"])
        game.run_frames(50, FRAME)
        token = game.tokens[0]
        y = token.y

        game.pause()
        game.run_frames(10, FRAME, start_time=50 * FRAME)

        assert game.state == SessionState.PAUSED
        assert token.y == y

    def test_handle_key(self, config):
        game = GateCloudGame(config, seed=1)
        assert game.handle_key(" ")
        game.tick(0.0)
        assert game.state == SessionState.RUNNING
        assert game.handle_key("space")
        game.tick(0.1)
        assert game.state == SessionState.PAUSED
        assert not game.handle_key("q")

    def test_reset(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=2)
        game.start()
        game.run_frames(300, 1 / 60)
        game.get_qubit("qubit1").apply("X")

        game.reset()
        game.tick(100.0)

        assert game.state == SessionState.STOPPED
        assert game.frame == 0
        assert game.score == 0
        assert game.combo == 0
        assert game.tokens == []
        assert game.dustbin_count == 0
        assert game.gate_queue.cursor == 0
        assert all(q.gates == [] for q in game.qubits)
        assert all(o.hits == 0 for o in game.obstacles)

    def test_state_change_events(self, config):
        game = GateCloudGame(config, seed=1)
        game.start()
        game.tick(0.0)
        game.pause()
        game.tick(0.1)
        changes = [e.data["state"] for e in game.drain_events() if e.kind == EVENT_STATE_CHANGED]
        assert changes == ["running", "paused"]


class TestSpawning:
    """Spawn timer and position."""

    def test_first_spawn_after_interval(self, config):
        game = GateCloudGame(config, seed=1, gates=["X", "H"])
        game.start()
        game.tick(0.0)
        assert game.tick(2.0).spawned is None
        spawned = game.tick(2.01).spawned
        assert spawned is not None
        assert spawned.gate == "X"
        assert spawned.y == config.board.spawn_y

    def test_spawn_x_within_spread(self, config):
        for seed in range(10):
            game = GateCloudGame(config, seed=seed, gates=["X"])
            game.start()
            game.tick(0.0)
            token = game.tick(2.5).spawned
            assert abs(token.x - config.board.spawn_center_x) <= config.board.spawn_spread / 2

    def test_one_spawn_per_tick(self, config):
        game = GateCloudGame(config, seed=1, gates=["X", "H", "Z"])
        game.start()
        game.tick(0.0)
        game.tick(100.0)
        assert len(game.tokens) == 1
        assert game.gate_queue.cursor == 1

    def test_spawn_event(self, config):
        game = GateCloudGame(config, seed=1, gates=["Z"])
        game.start()
        game.tick(0.0)
        game.tick(3.0)
        spawned = [e for e in game.drain_events() if e.kind == EVENT_TOKEN_SPAWNED]
        assert len(spawned) == 1
        assert spawned[0].data["gate"] == "Z"
        assert spawned[0].data["cursor"] == 1

    def test_resume_after_long_pause_spawns_immediately(self, config):
        game = GateCloudGame(config, seed=1, gates=["X"])
        game.start()
        game.tick(0.0)
        game.pause()
        game.tick(1.0)
        game.start()
        assert game.tick(10.0).spawned is not None

    def test_resume_can_shift_timer(self, config):
        spawn = dataclasses.replace(config.spawn, resume_shifts_timer=True)
        game = GateCloudGame(dataclasses.replace(config, spawn=spawn), seed=1, gates=["X"])
        game.start()
        game.tick(0.0)
        game.pause()
        game.tick(1.0)
        game.start()
        assert game.tick(10.0).spawned is None
        assert game.tick(11.5).spawned is not None


class TestScenarios:
    """Whole sessions on a simulated clock."""

    def test_single_x_flips_qubit(self, config):
        game = open_game(config, ["X"])
        results = game.run_frames(200, FRAME)

        assert game.zone_labels() == {"qubit1": "|1⟩"}
        assert game.state == SessionState.STOPPED
        assert sum(r.ended for r in results) == 1
        assert game.evaluate_target().passed

    def test_x_then_h_gives_superposition(self, config):
        game = open_game(config, ["X", "H"])
        game.run_frames(300, FRAME)
        assert game.get_qubit("qubit1").gates == ["X", "H"]
        assert game.zone_labels() == {"qubit1": "|+⟩"}

    def test_landing_event_and_effect(self, config):
        game = open_game(config, ["Y"])
        results = game.run_frames(200, FRAME)

        landed = [e for e in game.drain_events() if e.kind == EVENT_ZONE_LANDED]
        assert len(landed) == 1
        assert landed[0].data["zone_id"] == "qubit1"
        assert landed[0].data["label"] == "|1⟩"

        frame = next(r.frame for r in results if r.landings)
        landed_at = frame * FRAME
        assert [t.kind for t in game.active_effects(landed_at)] == [EVENT_ZONE_LANDED]
        assert game.active_effects(landed_at + config.effects.landing_ttl) == []

    def test_game_ends_once(self, config):
        game = GateCloudGame(config, seed=1, gates=[])
        game.start()
        game.run_frames(20, FRAME)
        events = game.drain_events()
        assert kinds(events).count(EVENT_GAME_ENDED) == 1
        assert game.state == SessionState.STOPPED

    def test_restart_after_end(self, config):
        game = open_game(config, ["X"])
        game.run_frames(200, FRAME)
        assert game.state == SessionState.STOPPED

        game.start()
        game.tick(20.0)
        # Queue is still exhausted, so the new session ends straight away
        assert game.state == SessionState.STOPPED
        assert kinds(game.drain_events()).count(EVENT_GAME_ENDED) == 2

    def test_deflector_collision(self, config):
        layout = OPEN_LAYOUT + [
            {"id": "deflector", "type": "deflector", "x": 400, "y": 300, "width": 400, "height": 200},
        ]
        game = GateCloudGame(config, seed=1, gates=["X"])
        game.provide_layout(layout)
        game.start()
        game.run_frames(200, FRAME)

        hits = [e for e in game.drain_events() if e.kind == EVENT_COLLISION]
        assert len(hits) == 1
        assert hits[0].data["obstacle_type"] == "deflector"
        assert game.obstacles[0].hits == 1

    def test_same_seed_same_session(self, pinball_config):
        def play():
            game = GateCloudGame(pinball_config, seed=11)
            game.start()
            game.run_frames(900, 1 / 60)
            return game.score, game.zone_labels(), [t.position for t in game.tokens]

        assert play() == play()

    def test_pinball_score_never_drops(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=4)
        game.start()
        results = game.run_frames(1500, 1 / 60)
        assert all(r.delta_score >= 0 for r in results)
        assert game.score == sum(r.delta_score for r in results)

    def test_event_listener(self, config):
        seen = []
        game = GateCloudGame(config, seed=1, gates=["X"], event_callback=seen.append)
        game.start()
        game.tick(0.0)
        assert kinds(seen) == [EVENT_STATE_CHANGED]

    def test_failing_listener_does_not_stop_tick(self, config):
        def broken(event):
            raise RuntimeError("listener bug")

        game = GateCloudGame(config, seed=1, gates=["X"], event_callback=broken)
        game.start()
        assert game.tick(0.0).state == SessionState.RUNNING


class TestTargetCheck:
    """Comparing qubit labels with the level target."""

    def test_failed_check_event(self, config):
        game = GateCloudGame(config, seed=1)
        game.check_target()
        game.tick(0.0)
        checks = [e for e in game.drain_events() if e.kind == EVENT_TARGET_CHECK]
        assert len(checks) == 1
        assert checks[0].data["passed"] is False
        assert checks[0].data["labels"] == {"qubit1": "|0⟩"}

    def test_pinball_bonus_awarded_once(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        for qubit in game.qubits:
            qubit.apply("X")

        game.check_target()
        game.tick(0.0)
        assert game.score == pinball_config.scoring.target_bonus

        game.handle_key("c")
        game.tick(0.1)
        assert game.score == pinball_config.scoring.target_bonus

    def test_deflector_check_awards_nothing(self, config):
        game = GateCloudGame(config, seed=1)
        game.get_qubit("qubit1").apply("X")
        game.check_target()
        game.tick(0.0)
        assert game.score == 0
        event = [e for e in game.drain_events() if e.kind == EVENT_TARGET_CHECK][0]
        assert event.data["passed"] is True


class TestLayout:
    """Layout snapshots from the presentation layer."""

    def test_default_layout_applied(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        assert {o.id for o in game.obstacles} == {
            "block_h", "block_x", "block_z", "block_p", "block_cnot", "block_m"
        }
        assert sorted(w.side for w in game.walls) == ["left", "right"]
        assert game.get_qubit("qubit1").span is not None

    def test_walls_face_the_board(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        faces = {w.side: w.x for w in game.walls}
        assert faces == {"left": 40.0, "right": 760.0}

    def test_block_radius_from_size(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        block = next(o for o in game.obstacles if o.id == "block_x")
        assert block.radius == 30.0
        assert block.tag == "X"
        assert block.position == (400.0, 280.0)

    def test_refresh_keeps_hits_and_zone_contents(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        next(o for o in game.obstacles if o.id == "block_x").hits = 3
        game.get_qubit("qubit1").apply("H")

        layout = [dict(id="block_x", type="block", gate="X", x=300, y=250, width=60, height=60),
                  dict(id="qubit1", type="qubit", x=0, y=900, width=400, height=80)]
        game.provide_layout(layout)
        game.tick(0.0)

        block = next(o for o in game.obstacles if o.id == "block_x")
        assert block.hits == 3
        assert block.x == 330.0
        assert game.get_qubit("qubit1").gates == ["H"]
        # qubit2 was not reported and can no longer be hit
        assert game.get_qubit("qubit2").span is None

    def test_mid_game_refresh(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        game.start()
        game.run_frames(200, 1 / 60)
        game.provide_layout([])
        results = game.run_frames(200, 1 / 60, start_time=200 / 60)
        assert all(not r.collisions for r in results[1:])
        # Config walls stand in when the layout reports none
        assert sorted(w.side for w in game.walls) == ["left", "right"]

    def test_unknown_ids_ignored(self, config):
        game = GateCloudGame(config, seed=1)
        game.provide_layout([
            {"id": "qubit9", "type": "qubit", "x": 0, "y": 0, "width": 10, "height": 10},
            {"id": "emitter9", "type": "emitter", "x": 0, "y": 0},
        ])
        game.tick(0.0)
        assert [q.id for q in game.qubits] == ["qubit1"]
        assert game.get_qubit("qubit1").span is None

    def test_force_source_moves_with_layout(self, config):
        game = GateCloudGame(config, seed=1)
        game.provide_layout([{"id": "emitter1", "type": "emitter", "x": 100, "y": 650,
                              "width": 40, "height": 40}])
        game.tick(0.0)
        assert game.get_force_source("emitter1").position == (120.0, 670.0)

    def test_landing_strip_sets_threshold(self, config):
        game = GateCloudGame(config, seed=1)
        game.provide_layout([{"id": "strip", "type": "landing", "x": 0, "y": 500,
                              "width": 1200, "height": 10}])
        game.tick(0.0)
        assert game.landing_y == 500.0


class TestSnapshot:
    """Numpy snapshot and render data."""

    def test_snapshot_shapes(self, pinball_config):
        game = GateCloudGame(pinball_config, seed=1)
        game.start()
        game.run_frames(200, 1 / 60)
        obs = game.build_snapshot().to_obs_dict()
        max_tokens = pinball_config.observation.max_tokens
        assert obs["token_x"].shape == (max_tokens,)
        assert obs["qubit_values"].shape == (2,)
        assert obs["source_angle"].shape == (2,)
        assert int(obs["token_mask"].sum()) == len(game.tokens)

    def test_render_data(self, config):
        game = GateCloudGame(config, seed=1)
        data = game.get_render_data()
        assert data["variant"] == "deflector"
        assert data["next_gates"] == list(config.gates.queue[:2])
        assert data["qubits"][0]["label"] == "|0⟩"
        assert {s["id"] for s in data["force_sources"]} == {"emitter1", "emitter2"}
