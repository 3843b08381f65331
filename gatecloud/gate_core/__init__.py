"""
Gate Core - The simulation engine.

This module provides the frame-driven game engine, its configuration and
a Gymnasium environment wrapper.

Main exports:
- GateCloudGame: Engine facade (commands, tick, queries, events)
- GateCloudEnv: Gymnasium environment for agents
- GameConfig: Configuration loaded from YAML
- fold_gates / display_label: The qubit transition rule
"""

from gatecloud.gate_core.config_loader import GameConfig, load_config, get_config
from gatecloud.gate_core.quantum_rules import QubitState, fold_gates, display_label
from gatecloud.gate_core.entities import FallingToken, QubitZone, Dustbin, ForceSource, Obstacle
from gatecloud.gate_core.events import GameEvent, EffectTicket
from gatecloud.gate_core.game import GateCloudGame, SessionState, TargetCheckResult, TickResult
from gatecloud.gate_core.env_gym import GateCloudEnv

__all__ = [
    "GameConfig",
    "load_config",
    "get_config",
    "QubitState",
    "fold_gates",
    "display_label",
    "FallingToken",
    "QubitZone",
    "Dustbin",
    "ForceSource",
    "Obstacle",
    "GameEvent",
    "EffectTicket",
    "GateCloudGame",
    "SessionState",
    "TargetCheckResult",
    "TickResult",
    "GateCloudEnv",
]
