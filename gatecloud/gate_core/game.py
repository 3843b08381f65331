"""
Core Game
=========

Main game orchestrator combining physics, landing, scoring and rules.

The presentation layer drives the engine by calling ``tick()`` once per
rendering frame. Player intent is queued through the command methods and
applied at the start of the next tick; everything the engine wants to
show is exposed through queries, buffered events and effect tickets.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from gatecloud.gate_core.collision import CollisionEngine, CollisionResult, WallBounce
from gatecloud.gate_core.commands import (
    CMD_CHECK_TARGET,
    CMD_PAUSE,
    CMD_PROVIDE_LAYOUT,
    CMD_RESET,
    CMD_SET_FORCE_ACTIVE,
    CMD_SET_FORCE_ANGLE,
    CMD_START,
    CMD_TOGGLE,
    Command,
    CommandQueue,
    command_for_key,
)
from gatecloud.gate_core.config_loader import EXTENDED_GATE_SET, GameConfig, get_config
from gatecloud.gate_core.entities import (
    OBSTACLE_BLOCK,
    OBSTACLE_DEFLECTOR,
    WALL_LEFT,
    WALL_RIGHT,
    Dustbin,
    FallingToken,
    ForceSource,
    Obstacle,
    QubitZone,
    Span,
    Wall,
)
from gatecloud.gate_core.events import (
    EVENT_COLLISION,
    EVENT_GAME_ENDED,
    EVENT_STATE_CHANGED,
    EVENT_TARGET_CHECK,
    EVENT_TOKEN_SPAWNED,
    EVENT_WALL_BOUNCE,
    EVENT_ZONE_LANDED,
    EffectTicket,
    EventCallback,
    EventLog,
    GameEvent,
)
from gatecloud.gate_core.landing import LandingResolver, LandingResult
from gatecloud.gate_core.layout import (
    ITEM_BLOCK,
    ITEM_DEFLECTOR,
    ITEM_DUSTBIN,
    ITEM_FORCE_SOURCE,
    ITEM_QUBIT,
    ITEM_WALL,
    LayoutItem,
    LayoutSnapshot,
    parse_layout,
)
from gatecloud.gate_core.rng import GateQueue
from gatecloud.gate_core.rules import GameRules
from gatecloud.gate_core.scoring import REASON_TARGET, ComboLedger
from gatecloud.gate_core.state_snapshot import GameSnapshot, SnapshotBuilder

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Session lifecycle."""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass
class TargetCheckResult:
    """Result of comparing every qubit with the level target."""
    passed: bool
    target: str
    labels: Dict[str, str]
    score: int


@dataclass
class TickResult:
    """What happened during one tick."""
    frame: int
    state: SessionState
    spawned: Optional[FallingToken] = None
    collisions: List[CollisionResult] = field(default_factory=list)
    wall_bounces: List[WallBounce] = field(default_factory=list)
    landings: List[LandingResult] = field(default_factory=list)
    ended: bool = False
    delta_score: int = 0


class GateCloudGame:
    """
    Main game simulation class.

    Orchestrates:
    - Command queue (player intent)
    - Gate queue and spawn timer
    - Collision engine (physics step)
    - Landing resolution and qubit state
    - Score/combo ledger (pinball)
    - Events and effect tickets

    One tick = one rendering frame.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
        event_callback: Optional[EventCallback] = None,
        gates: Optional[Sequence[str]] = None
    ):
        """
        Initialize game.

        Args:
            config: Game configuration. Uses default if None.
            seed: Random seed for reproducibility.
            clock: Time source in seconds. Uses time.monotonic if None.
            event_callback: Optional listener called for every event.
            gates: Explicit gate queue, overriding the config.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._seed = seed
        self._clock = clock if clock is not None else time.monotonic

        # Initialize subsystems
        self._queue = GateQueue(config, seed, gates)
        self._ledger = ComboLedger(config)
        self._collision = CollisionEngine(config, rng=self._queue.rng, ledger=self._ledger)
        self._landing = LandingResolver(config, ledger=self._ledger)
        self._rules = GameRules(config)
        self._snapshot_builder = SnapshotBuilder(config)
        self._events = EventLog()
        self._commands = CommandQueue()
        if event_callback is not None:
            self._events.subscribe(event_callback)

        # Zones and force sources live for the whole session
        self._qubits: List[QubitZone] = [QubitZone(qid) for qid in config.qubits.ids]
        self._dustbin = Dustbin()
        self._sources: Dict[str, ForceSource] = {
            s.id: ForceSource.from_config(s) for s in config.force_sources
        }

        # Game state
        self._tokens: List[FallingToken] = []
        self._state = SessionState.STOPPED
        self._frame: int = 0
        self._next_uid: int = 0
        self._target_rewarded: bool = False
        self._layout = LayoutSnapshot()

        self._apply_layout(LayoutSnapshot(items=list(config.layout)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def config(self) -> GameConfig:
        """Game configuration."""
        return self._config

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SessionState.RUNNING

    @property
    def frame(self) -> int:
        """Number of frames simulated in this session."""
        return self._frame

    @property
    def tokens(self) -> List[FallingToken]:
        """Active tokens (for rendering)."""
        return list(self._tokens)

    @property
    def qubits(self) -> List[QubitZone]:
        return list(self._qubits)

    @property
    def dustbin(self) -> Dustbin:
        return self._dustbin

    @property
    def dustbin_count(self) -> int:
        return self._dustbin.count

    @property
    def score(self) -> int:
        """Current score."""
        return self._ledger.score

    @property
    def combo(self) -> int:
        return self._ledger.combo

    @property
    def ledger(self) -> ComboLedger:
        return self._ledger

    @property
    def gate_queue(self) -> GateQueue:
        """The gate queue (for preview access)."""
        return self._queue

    @property
    def force_sources(self) -> List[ForceSource]:
        return list(self._sources.values())

    @property
    def obstacles(self) -> List[Obstacle]:
        return list(self._collision.obstacles)

    @property
    def walls(self) -> List[Wall]:
        return list(self._collision.walls)

    @property
    def landing_y(self) -> float:
        return self._landing.landing_y

    @property
    def layout(self) -> LayoutSnapshot:
        return self._layout

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def pending_commands(self) -> int:
        return len(self._commands)

    def zone_labels(self) -> Dict[str, str]:
        """Display label of every qubit, by id."""
        return {q.id: q.label for q in self._qubits}

    def get_qubit(self, qubit_id: str) -> QubitZone:
        for qubit in self._qubits:
            if qubit.id == qubit_id:
                return qubit
        raise KeyError(f"Unknown qubit: {qubit_id}")

    def get_force_source(self, source_id: str) -> ForceSource:
        try:
            return self._sources[source_id]
        except KeyError:
            raise KeyError(f"Unknown force source: {source_id}") from None

    def drain_events(self) -> List[GameEvent]:
        """Return and clear buffered events."""
        return self._events.drain()

    def active_effects(self, now: Optional[float] = None) -> List[EffectTicket]:
        """Effect tickets still alive at ``now`` (presentation clock)."""
        if now is None:
            now = self._clock()
        return self._events.active_effects(now)

    def evaluate_target(self) -> TargetCheckResult:
        """Compare every qubit with the level target without side effects."""
        target = self._config.qubits.target_state
        labels = self.zone_labels()
        passed = all(label == target for label in labels.values())
        return TargetCheckResult(
            passed=passed,
            target=target,
            labels=labels,
            score=self._ledger.score
        )

    def get_info(self) -> Dict[str, Any]:
        """Summary dict for logs and the Gymnasium wrapper."""
        return {
            "state": self._state.value,
            "frame": self._frame,
            "score": self._ledger.score,
            "combo": self._ledger.combo,
            "max_combo": self._ledger.max_combo,
            "gates_spawned": self._queue.cursor,
            "gates_total": len(self._queue),
            "active_tokens": len(self._tokens),
            "dustbin_count": self._dustbin.count,
            "qubits": self.zone_labels(),
        }

    def get_render_data(self) -> Dict[str, Any]:
        """
        Get data needed for rendering.

        Returns:
            Dict with tokens, zones, obstacles, force sources and HUD values.
        """
        return {
            "variant": self._config.variant,
            "board_width": self._config.board.width,
            "board_height": self._config.board.height,
            "landing_y": self._landing.landing_y,
            "state": self._state.value,
            "tokens": [t.to_dict() for t in self._tokens],
            "qubits": [
                {"id": q.id, "label": q.label, "gates": list(q.gates)}
                for q in self._qubits
            ],
            "dustbin_count": self._dustbin.count,
            "obstacles": [
                {"id": o.id, "type": o.type_name, "x": o.x, "y": o.y,
                 "radius": o.radius, "hits": o.hits}
                for o in self._collision.obstacles
            ],
            "force_sources": [
                {"id": s.id, "x": s.x, "y": s.y, "angle": s.angle,
                 "effective_angle": s.effective_angle, "active": s.active}
                for s in self._sources.values()
            ],
            "score": self._ledger.score,
            "combo": self._ledger.combo,
            "multiplier": self._ledger.multiplier(),
            "gates_spawned": self._queue.cursor,
            "gates_total": len(self._queue),
            "next_gates": self._queue.peek(),
        }

    def build_snapshot(self) -> GameSnapshot:
        """Fixed-size numpy snapshot of the current state."""
        return self._snapshot_builder.build(
            tokens=self._tokens,
            qubits=self._qubits,
            sources=list(self._sources.values()),
            state=self._state.value,
            score=self._ledger.score,
            combo=self._ledger.combo,
            dustbin_count=self._dustbin.count,
            gates_spawned=self._queue.cursor,
            gates_total=len(self._queue),
            frame=self._frame,
        )

    # ------------------------------------------------------------------
    # Commands (queued, applied at the next tick)
    # ------------------------------------------------------------------

    def submit(self, command: Command) -> None:
        if command.kind in (CMD_SET_FORCE_ANGLE, CMD_SET_FORCE_ACTIVE):
            self.get_force_source(command.args["source_id"])
        self._commands.push_command(command)

    def start(self) -> None:
        self._commands.push(CMD_START)

    def pause(self) -> None:
        self._commands.push(CMD_PAUSE)

    def toggle(self) -> None:
        self._commands.push(CMD_TOGGLE)

    def reset(self, seed: Optional[int] = None) -> None:
        self._commands.push(CMD_RESET, seed=seed)

    def check_target(self) -> None:
        self._commands.push(CMD_CHECK_TARGET)

    def set_force_angle(self, source_id: str, degrees: float) -> None:
        """Queue an angle change. Raises KeyError for an unknown source."""
        self.get_force_source(source_id)
        self._commands.push(CMD_SET_FORCE_ANGLE, source_id=source_id, degrees=degrees)

    def set_force_active(self, source_id: str, active: bool) -> None:
        self.get_force_source(source_id)
        self._commands.push(CMD_SET_FORCE_ACTIVE, source_id=source_id, active=active)

    def provide_layout(self, items: Sequence[Any]) -> None:
        self._commands.push(CMD_PROVIDE_LAYOUT, items=list(items))

    def handle_key(self, key: str) -> bool:
        """
        Queue the command bound to a key.

        Returns:
            True if the key was bound.
        """
        command = command_for_key(key)
        if command is None:
            return False
        self._commands.push_command(command)
        return True

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> TickResult:
        """
        Run one frame.

        Applies queued commands, then, while running: spawn, physics step,
        landing resolution and the end-of-game check.

        Args:
            now: Current time in seconds. Uses the clock if None.

        Returns:
            TickResult for this frame.
        """
        if now is None:
            now = self._clock()

        self._apply_commands(now)

        if self._state != SessionState.RUNNING:
            return TickResult(frame=self._frame, state=self._state)

        score_before = self._ledger.score
        self._frame += 1
        result = TickResult(frame=self._frame, state=self._state)

        # (a) spawn
        if self._rules.spawn.is_due(now) and not self._queue.exhausted:
            result.spawned = self._spawn_token()
            self._rules.spawn.mark_spawned(now)

        # (b) physics
        report = self._collision.step(self._tokens, self._sources.values())
        result.collisions = report.collisions
        result.wall_bounces = report.wall_bounces
        for hit in report.collisions:
            self._events.emit(
                EVENT_COLLISION, self._frame, hit.position,
                obstacle_id=hit.obstacle_id,
                obstacle_type=hit.obstacle_type,
                token_uid=hit.token_uid,
                combo=self._ledger.combo,
            )
            self._events.add_effect(
                EVENT_COLLISION, hit.position, now, self._config.effects.collision_ttl
            )
        for bounce in report.wall_bounces:
            self._events.emit(
                EVENT_WALL_BOUNCE, self._frame, bounce.position,
                wall_id=bounce.wall_id,
                token_uid=bounce.token_uid,
            )
            self._events.add_effect(
                EVENT_WALL_BOUNCE, bounce.position, now, self._config.effects.wall_ttl
            )

        # (c) landings
        result.landings = self._resolve_landings(now)

        # (d) end of game
        termination = self._rules.termination.check_termination(
            queue_exhausted=self._queue.exhausted,
            active_tokens=len(self._tokens)
        )
        if termination.terminated:
            self._set_state(SessionState.STOPPED)
            self._events.emit(
                EVENT_GAME_ENDED, self._frame,
                reason=termination.reason,
                qubits=self.zone_labels(),
                score=self._ledger.score,
            )
            logger.info("All gates processed after %d frames: %s", self._frame, self.zone_labels())
            result.ended = True
            result.state = self._state

        result.delta_score = self._ledger.score - score_before
        return result

    def run_frames(self, count: int, frame_seconds: float, start_time: float = 0.0) -> List[TickResult]:
        """
        Tick ``count`` times on a simulated clock.

        Useful for headless runs and tests; the clock advances by
        ``frame_seconds`` per frame starting after ``start_time``.
        """
        results = []
        for i in range(count):
            results.append(self.tick(start_time + (i + 1) * frame_seconds))
        return results

    def _spawn_token(self) -> Optional[FallingToken]:
        gate = self._queue.advance()
        if gate is None:
            return None
        token = FallingToken(
            uid=self._next_uid,
            gate=gate,
            x=self._rules.spawn.spawn_x(self._queue.rng),
            y=self._rules.spawn.spawn_y,
            radius=self._config.physics.token_radius,
        )
        self._next_uid += 1
        self._tokens.append(token)
        self._events.emit(
            EVENT_TOKEN_SPAWNED, self._frame, token.position,
            token_uid=token.uid,
            gate=gate,
            cursor=self._queue.cursor,
            total=len(self._queue),
        )
        logger.debug("Gate %s dropped (%d/%d)", gate, self._queue.cursor, len(self._queue))
        return token

    def _resolve_landings(self, now: float) -> List[LandingResult]:
        results = []
        remaining = []
        for token in self._tokens:
            if not self._landing.has_landed(token):
                remaining.append(token)
                continue
            landing = self._landing.resolve(token, self._qubits, self._dustbin)
            results.append(landing)
            self._events.emit(
                EVENT_ZONE_LANDED, self._frame, landing.position,
                zone_id=landing.zone_id,
                gate=landing.gate,
                outcome=landing.outcome,
                label=landing.label,
                token_uid=landing.token_uid,
            )
            self._events.add_effect(
                EVENT_ZONE_LANDED, landing.position, now, self._config.effects.landing_ttl
            )
        self._tokens = remaining
        return results

    # ------------------------------------------------------------------
    # Command handling
    # ------------------------------------------------------------------

    def _apply_commands(self, now: float) -> None:
        for command in self._commands.drain():
            self._apply_command(command, now)

    def _apply_command(self, command: Command, now: float) -> None:
        kind = command.kind
        args = command.args

        if kind == CMD_TOGGLE:
            if self._state == SessionState.RUNNING:
                kind = CMD_PAUSE
            else:
                kind = CMD_START

        if kind == CMD_START:
            self._do_start(now)
        elif kind == CMD_PAUSE:
            self._do_pause(now)
        elif kind == CMD_RESET:
            self._do_reset(args.get("seed"))
        elif kind == CMD_CHECK_TARGET:
            self._do_check_target()
        elif kind == CMD_SET_FORCE_ANGLE:
            self.get_force_source(args["source_id"]).set_angle(args["degrees"])
        elif kind == CMD_SET_FORCE_ACTIVE:
            self.get_force_source(args["source_id"]).active = bool(args["active"])
        elif kind == CMD_PROVIDE_LAYOUT:
            self._apply_layout(parse_layout(args.get("items", [])))

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        self._events.emit(
            EVENT_STATE_CHANGED, self._frame,
            previous=previous.value,
            state=state.value,
        )

    def _do_start(self, now: float) -> None:
        if self._state == SessionState.STOPPED:
            self._rules.spawn.restart(now)
            self._rules.termination.reset()
            self._set_state(SessionState.RUNNING)
            logger.info("Game started with %d gates queued", self._queue.remaining)
        elif self._state == SessionState.PAUSED:
            self._rules.spawn.resume(now)
            self._set_state(SessionState.RUNNING)
            logger.info("Game resumed")

    def _do_pause(self, now: float) -> None:
        if self._state == SessionState.RUNNING:
            self._rules.spawn.pause(now)
            self._set_state(SessionState.PAUSED)
            logger.info("Game paused at frame %d", self._frame)

    def _do_reset(self, seed: Optional[int] = None) -> None:
        if seed is not None:
            self._seed = seed

        self._queue.reset(self._seed)
        self._collision.rng = self._queue.rng
        self._collision.reset_hits()
        self._ledger.reset()
        self._rules.reset()
        for qubit in self._qubits:
            qubit.reset()
        self._dustbin.reset()
        self._events.clear()

        self._tokens = []
        self._frame = 0
        self._next_uid = 0
        self._target_rewarded = False
        self._set_state(SessionState.STOPPED)
        logger.info("Game reset")

    def _do_check_target(self) -> TargetCheckResult:
        result = self.evaluate_target()
        if result.passed and self._config.is_pinball and not self._target_rewarded:
            self._ledger.award(self._config.scoring.target_bonus, REASON_TARGET)
            self._target_rewarded = True
            result.score = self._ledger.score
        self._events.emit(
            EVENT_TARGET_CHECK, self._frame,
            passed=result.passed,
            target=result.target,
            labels=dict(result.labels),
            score=result.score,
        )
        return result

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _apply_layout(self, snapshot: LayoutSnapshot) -> None:
        """
        Install a fresh layout snapshot.

        Zone spans, obstacles and walls are rebuilt; zone contents, force
        source settings and obstacle hit counters survive.
        """
        self._layout = snapshot
        physics = self._config.physics

        known = {q.id for q in self._qubits}
        for qubit in self._qubits:
            item = snapshot.get(qubit.id)
            qubit.span = _span_of(item) if item is not None and item.type == ITEM_QUBIT else None
        for item in snapshot.of_type(ITEM_QUBIT):
            if item.id not in known:
                logger.warning("Layout reports unknown qubit '%s'; ignoring", item.id)

        bins = snapshot.of_type(ITEM_DUSTBIN)
        self._dustbin.span = _span_of(bins[0]) if bins else None

        obstacles = []
        for item in snapshot.of_type(ITEM_DEFLECTOR):
            obstacles.append(_obstacle_of(item, OBSTACLE_DEFLECTOR, physics.deflector_radius))
        for item in snapshot.of_type(ITEM_BLOCK):
            obstacle = _obstacle_of(item, OBSTACLE_BLOCK, physics.block_radius)
            if obstacle.tag is not None and obstacle.tag not in EXTENDED_GATE_SET:
                logger.warning("Block '%s' has unknown gate '%s'; treating as plain", item.id, item.gate)
                obstacle.tag = None
            obstacles.append(obstacle)

        self._collision.set_layout(obstacles, self._walls_of(snapshot))

        for item in snapshot.of_type(ITEM_FORCE_SOURCE):
            source = self._sources.get(item.id)
            if source is None:
                logger.warning("Layout reports unknown force source '%s'; ignoring", item.id)
                continue
            source.x, source.y = item.center

        landing_y = snapshot.landing_y
        self._landing.landing_y = landing_y if landing_y is not None else self._config.board.landing_y

    def _walls_of(self, snapshot: LayoutSnapshot) -> List[Wall]:
        board = self._config.board
        walls = []
        for item in snapshot.of_type(ITEM_WALL):
            if item.center[0] < board.width / 2.0:
                walls.append(Wall(item.id, item.right, WALL_LEFT))
            else:
                walls.append(Wall(item.id, item.left, WALL_RIGHT))
        if not walls:
            if board.wall_left is not None:
                walls.append(Wall("wall_left", board.wall_left, WALL_LEFT))
            if board.wall_right is not None:
                walls.append(Wall("wall_right", board.wall_right, WALL_RIGHT))
        return walls


def _span_of(item: LayoutItem) -> Span:
    return Span(item.left, item.right)


def _obstacle_of(item: LayoutItem, kind: str, default_radius: float) -> Obstacle:
    cx, cy = item.center
    radius = min(item.width, item.height) / 2.0 if item.has_area else default_radius
    return Obstacle(id=item.id, kind=kind, x=cx, y=cy, radius=radius, tag=item.gate)
