"""
Configuration Loader
====================

Loads and validates game_config.yaml (or pinball_config.yaml), providing
typed access to all parameters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Optional

import yaml

from gatecloud.gate_core.layout import LayoutItem, parse_layout


VARIANT_DEFLECTOR = "deflector"
VARIANT_PINBALL = "pinball"
VARIANTS = (VARIANT_DEFLECTOR, VARIANT_PINBALL)

# Every label the engine knows, as gate or as obstacle behavior tag
EXTENDED_GATE_SET = ("X", "H", "Z", "Y", "P", "CNOT", "M")

_VARIANT_FILES = {
    VARIANT_DEFLECTOR: "game_config.yaml",
    VARIANT_PINBALL: "pinball_config.yaml",
}


@dataclass(frozen=True)
class BoardConfig:
    """Board geometry, landing threshold and spawn area."""
    width: float
    height: float
    landing_y: float         # Tokens below this Y resolve their landing
    spawn_center_x: float    # Center of the gate cloud
    spawn_y: float
    spawn_spread: float      # Total width of the randomized spawn offset
    wall_left: Optional[float]
    wall_right: Optional[float]


@dataclass(frozen=True)
class PhysicsConfig:
    """Per-frame physics parameters."""
    gravity: float
    deflection_force: float
    token_radius: float
    deflector_radius: float
    block_radius: float
    damping_x: float
    damping_y: float
    wall_bounciness: float
    jitter: float            # H scatter range per axis
    cnot_spread_degrees: float
    z_spin_degrees: float


@dataclass(frozen=True)
class SpawnConfig:
    """Spawn timer parameters."""
    interval_seconds: float
    resume_shifts_timer: bool


@dataclass(frozen=True)
class GatesConfig:
    """Gate vocabulary and the drop queue."""
    gate_set: Tuple[str, ...]
    queue: Tuple[str, ...]
    random_length: int                 # >0 generates the queue from weights
    weights: Tuple[int, ...]           # One weight per gate_set entry


@dataclass(frozen=True)
class QubitsConfig:
    """Qubit target zones."""
    ids: Tuple[str, ...]
    target_state: str


@dataclass(frozen=True)
class ForceSourceConfig:
    """A single emitter or flipper."""
    id: str
    x: float
    y: float
    radius: float
    strength: float
    power: float
    base_angle: float
    min_angle: float
    max_angle: float


@dataclass(frozen=True)
class ScoringConfig:
    """Scoring parameters (pinball variant)."""
    enabled: bool
    collision_points: int
    qubit_base: int
    bonus_per_bounce: int
    dustbin_points: int
    combo_step: int
    target_bonus: int


@dataclass(frozen=True)
class EffectsConfig:
    """Lifetime of transient presentation effects."""
    collision_ttl: float
    wall_ttl: float
    landing_ttl: float


@dataclass(frozen=True)
class ObservationConfig:
    """Snapshot / observation parameters."""
    max_tokens: int
    frames_per_step: int
    frame_seconds: float
    max_steps: int


@dataclass(frozen=True)
class GameConfig:
    """
    Complete game configuration loaded from YAML.

    All values are immutable to prevent accidental modification during runtime.
    """
    variant: str
    board: BoardConfig
    physics: PhysicsConfig
    spawn: SpawnConfig
    gates: GatesConfig
    qubits: QubitsConfig
    force_sources: Tuple[ForceSourceConfig, ...]
    scoring: ScoringConfig
    effects: EffectsConfig
    observation: ObservationConfig
    layout: Tuple[LayoutItem, ...] = ()  # Default layout until the presentation layer reports one

    @property
    def is_pinball(self) -> bool:
        """True for the pinball variant (walls, blocks, flippers, scoring)."""
        return self.variant == VARIANT_PINBALL

    @property
    def num_force_sources(self) -> int:
        return len(self.force_sources)

    def get_force_source(self, source_id: str) -> ForceSourceConfig:
        """Get force source config by ID."""
        for source in self.force_sources:
            if source.id == source_id:
                return source
        raise KeyError(f"Unknown force source: {source_id}")


def _parse_labels(data: List, name: str) -> Tuple[str, ...]:
    """Parse a list of gate labels, normalizing case."""
    if not isinstance(data, (list, tuple)):
        raise ValueError(f"{name} must be a list of gate labels, got {data!r}")
    return tuple(str(label).upper() for label in data)


def _parse_optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def _parse_force_source(data: dict, variant: str) -> ForceSourceConfig:
    """Parse a single emitter/flipper configuration from YAML."""
    pinball = variant == VARIANT_PINBALL
    return ForceSourceConfig(
        id=str(data["id"]),
        x=float(data["x"]),
        y=float(data["y"]),
        radius=float(data.get("radius", 200.0)),
        strength=float(data.get("strength", 0.8 if pinball else 0.5)),
        power=float(data.get("power", 1.0)),
        base_angle=float(data.get("base_angle", 0.0)),
        min_angle=float(data.get("min_angle", -90.0)),
        max_angle=float(data.get("max_angle", 90.0)),
    )


def _validate_config(config: GameConfig) -> None:
    """Validate configuration consistency."""
    if config.variant not in VARIANTS:
        raise ValueError(f"variant must be one of {VARIANTS}, got '{config.variant}'")

    unknown = set(config.gates.gate_set) - set(EXTENDED_GATE_SET)
    if unknown:
        raise ValueError(f"Unknown gate labels in gate_set: {sorted(unknown)}")

    # Queue labels must come from the playable gate set
    for label in config.gates.queue:
        if label not in config.gates.gate_set:
            raise ValueError(
                f"Queue label '{label}' is not in gate_set {config.gates.gate_set}"
            )

    if config.gates.random_length > 0 and len(config.gates.weights) != len(config.gates.gate_set):
        raise ValueError(
            f"gates.weights length ({len(config.gates.weights)}) must match "
            f"gate_set length ({len(config.gates.gate_set)})"
        )

    for item in config.layout:
        if item.gate is not None and item.gate not in EXTENDED_GATE_SET:
            raise ValueError(f"Layout item '{item.id}' has unknown gate tag '{item.gate}'")

    if not config.qubits.ids:
        raise ValueError("At least one qubit id is required")
    if len(set(config.qubits.ids)) != len(config.qubits.ids):
        raise ValueError(f"Duplicate qubit ids: {config.qubits.ids}")

    if config.spawn.interval_seconds <= 0:
        raise ValueError(
            f"spawn.interval_seconds must be positive, got {config.spawn.interval_seconds}"
        )

    source_ids = [s.id for s in config.force_sources]
    if len(set(source_ids)) != len(source_ids):
        raise ValueError(f"Duplicate force source ids: {source_ids}")
    for source in config.force_sources:
        if source.min_angle > source.max_angle:
            raise ValueError(f"Force source '{source.id}' has min_angle > max_angle")

    if config.scoring.combo_step <= 0:
        raise ValueError(f"scoring.combo_step must be positive, got {config.scoring.combo_step}")

    if config.observation.max_tokens <= 0:
        raise ValueError("observation.max_tokens must be positive")


def default_config_path(variant: Optional[str] = None) -> str:
    """Path of the bundled config file for a variant."""
    variant = variant or VARIANT_DEFLECTOR
    if variant not in _VARIANT_FILES:
        raise ValueError(f"variant must be one of {VARIANTS}, got '{variant}'")
    return os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        _VARIANT_FILES[variant]
    )


def load_config(
    config_path: Optional[str] = None,
    variant: Optional[str] = None
) -> GameConfig:
    """
    Load and validate game configuration from YAML.

    Args:
        config_path: Path to a config YAML. If None, uses the bundled file.
        variant: Bundled variant to load when config_path is None
            ("deflector" or "pinball").

    Returns:
        Validated GameConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if config_path is None:
        config_path = default_config_path(variant)

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    variant_name = str(raw.get("variant", VARIANT_DEFLECTOR))
    pinball = variant_name == VARIANT_PINBALL

    board_data = raw["board"]
    board = BoardConfig(
        width=float(board_data["width"]),
        height=float(board_data["height"]),
        landing_y=float(board_data["landing_y"]),
        spawn_center_x=float(board_data.get("spawn_center_x", float(board_data["width"]) / 2)),
        spawn_y=float(board_data["spawn_y"]),
        spawn_spread=float(board_data.get("spawn_spread", 200.0)),
        wall_left=_parse_optional_float(board_data.get("wall_left")),
        wall_right=_parse_optional_float(board_data.get("wall_right")),
    )

    physics_data = raw["physics"]
    physics = PhysicsConfig(
        gravity=float(physics_data["gravity"]),
        deflection_force=float(physics_data["deflection_force"]),
        token_radius=float(physics_data.get("token_radius", 20.0)),
        deflector_radius=float(physics_data.get("deflector_radius", 75.0)),
        block_radius=float(physics_data.get("block_radius", 30.0)),
        damping_x=float(physics_data.get("damping_x", 0.995 if pinball else 1.0)),
        damping_y=float(physics_data.get("damping_y", 0.998 if pinball else 1.0)),
        wall_bounciness=float(physics_data.get("wall_bounciness", 0.7)),
        jitter=float(physics_data.get("jitter", 1.5)),
        cnot_spread_degrees=float(physics_data.get("cnot_spread_degrees", 90.0)),
        z_spin_degrees=float(physics_data.get("z_spin_degrees", 45.0)),
    )

    spawn_data = raw.get("spawn", {})
    spawn = SpawnConfig(
        interval_seconds=float(spawn_data.get("interval_seconds", 2.0)),
        resume_shifts_timer=bool(spawn_data.get("resume_shifts_timer", False)),
    )

    gates_data = raw["gates"]
    gate_set = _parse_labels(gates_data["gate_set"], "gates.gate_set")
    gates = GatesConfig(
        gate_set=gate_set,
        queue=_parse_labels(gates_data.get("queue", []), "gates.queue"),
        random_length=int(gates_data.get("random_length", 0)),
        weights=tuple(int(w) for w in gates_data.get("weights", [1] * len(gate_set))),
    )

    qubits_data = raw["qubits"]
    qubits = QubitsConfig(
        ids=tuple(str(q) for q in qubits_data["ids"]),
        target_state=str(qubits_data.get("target_state", "|1⟩")),
    )

    force_sources = tuple(
        _parse_force_source(s, variant_name)
        for s in raw.get("force_sources", [])
    )

    scoring_data = raw.get("scoring", {})
    scoring = ScoringConfig(
        enabled=bool(scoring_data.get("enabled", pinball)),
        collision_points=int(scoring_data.get("collision_points", 30)),
        qubit_base=int(scoring_data.get("qubit_base", 100)),
        bonus_per_bounce=int(scoring_data.get("bonus_per_bounce", 25)),
        dustbin_points=int(scoring_data.get("dustbin_points", 10)),
        combo_step=int(scoring_data.get("combo_step", 5)),
        target_bonus=int(scoring_data.get("target_bonus", 500)),
    )

    effects_data = raw.get("effects", {})
    effects = EffectsConfig(
        collision_ttl=float(effects_data.get("collision_ttl", 0.5)),
        wall_ttl=float(effects_data.get("wall_ttl", 0.3)),
        landing_ttl=float(effects_data.get("landing_ttl", 1.0)),
    )

    obs_data = raw.get("observation", {})
    observation = ObservationConfig(
        max_tokens=int(obs_data.get("max_tokens", 16)),
        frames_per_step=int(obs_data.get("frames_per_step", 4)),
        frame_seconds=float(obs_data.get("frame_seconds", 1.0 / 60.0)),
        max_steps=int(obs_data.get("max_steps", 5000)),
    )

    config = GameConfig(
        variant=variant_name,
        board=board,
        physics=physics,
        spawn=spawn,
        gates=gates,
        qubits=qubits,
        force_sources=force_sources,
        scoring=scoring,
        effects=effects,
        observation=observation,
        layout=tuple(parse_layout(raw.get("layout", [])).items),
    )

    _validate_config(config)
    return config


# Module-level cache for convenience
_cached_config: Optional[GameConfig] = None


def get_config() -> GameConfig:
    """Get the cached game configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> GameConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
