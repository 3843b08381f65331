"""
State Snapshot
==============

Packs game state into fixed-size numpy arrays for Gymnasium observations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, TYPE_CHECKING
import numpy as np

from gatecloud.gate_core.config_loader import EXTENDED_GATE_SET, GameConfig, get_config

if TYPE_CHECKING:
    from gatecloud.gate_core.entities import FallingToken, ForceSource, QubitZone

SESSION_STATES = ("stopped", "running", "paused")

# Gate label -> integer code used in observations (-1 = empty slot)
GATE_CODES: Dict[str, int] = {label: i for i, label in enumerate(EXTENDED_GATE_SET)}


def gate_code(label: str) -> int:
    return GATE_CODES.get(label, -1)


@dataclass
class GameSnapshot:
    """
    Complete game state snapshot.

    All arrays are fixed-size with masking for variable token counts.
    """
    # Core state
    state: int
    score: int
    combo: int
    dustbin_count: int
    gates_spawned: int
    gates_total: int
    frame: int

    # Per-qubit numeric state (0, 0.5, 1)
    qubit_values: np.ndarray      # (num_qubits,) float32

    # Force sources
    source_angle: np.ndarray      # (num_sources,) float32
    source_active: np.ndarray     # (num_sources,) bool

    # Token arrays (fixed size, padded)
    token_gate: np.ndarray        # (MAX_TOKENS,) int16
    token_x: np.ndarray           # (MAX_TOKENS,) float32
    token_y: np.ndarray           # (MAX_TOKENS,) float32
    token_vx: np.ndarray          # (MAX_TOKENS,) float32
    token_vy: np.ndarray          # (MAX_TOKENS,) float32
    token_mask: np.ndarray        # (MAX_TOKENS,) bool

    @property
    def token_count(self) -> int:
        return int(self.token_mask.sum())

    def to_obs_dict(self) -> Dict[str, np.ndarray]:
        """Convert to Gymnasium observation dictionary."""
        return {
            "state": np.array(self.state, dtype=np.int64),
            "score": np.array(self.score, dtype=np.int64),
            "combo": np.array(self.combo, dtype=np.int32),
            "dustbin_count": np.array(self.dustbin_count, dtype=np.int32),
            "gates_remaining": np.array(
                self.gates_total - self.gates_spawned, dtype=np.int32
            ),
            "qubit_values": self.qubit_values,
            "source_angle": self.source_angle,
            "source_active": self.source_active.astype(np.int8),
            "token_gate": self.token_gate,
            "token_x": self.token_x,
            "token_y": self.token_y,
            "token_vx": self.token_vx,
            "token_vy": self.token_vy,
            "token_mask": self.token_mask.astype(np.int8),
        }


class SnapshotBuilder:
    """Builds GameSnapshots with consistent array sizes."""

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize snapshot builder.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._max_tokens = config.observation.max_tokens

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    def build(
        self,
        tokens: Sequence["FallingToken"],
        qubits: Sequence["QubitZone"],
        sources: Sequence["ForceSource"],
        state: str,
        score: int,
        combo: int,
        dustbin_count: int,
        gates_spawned: int,
        gates_total: int,
        frame: int
    ) -> GameSnapshot:
        """
        Build a snapshot.

        Tokens beyond max_tokens are dropped (oldest first kept).
        """
        n = self._max_tokens
        token_gate = np.full(n, -1, dtype=np.int16)
        token_x = np.zeros(n, dtype=np.float32)
        token_y = np.zeros(n, dtype=np.float32)
        token_vx = np.zeros(n, dtype=np.float32)
        token_vy = np.zeros(n, dtype=np.float32)
        token_mask = np.zeros(n, dtype=bool)

        for i, token in enumerate(list(tokens)[:n]):
            token_gate[i] = gate_code(token.gate)
            token_x[i] = token.x
            token_y[i] = token.y
            token_vx[i] = token.vx
            token_vy[i] = token.vy
            token_mask[i] = True

        qubit_values = np.array([q.numeric_state for q in qubits], dtype=np.float32)
        source_angle = np.array([s.angle for s in sources], dtype=np.float32)
        source_active = np.array([s.active for s in sources], dtype=bool)

        return GameSnapshot(
            state=SESSION_STATES.index(state),
            score=score,
            combo=combo,
            dustbin_count=dustbin_count,
            gates_spawned=gates_spawned,
            gates_total=gates_total,
            frame=frame,
            qubit_values=qubit_values,
            source_angle=source_angle,
            source_active=source_active,
            token_gate=token_gate,
            token_x=token_x,
            token_y=token_y,
            token_vx=token_vx,
            token_vy=token_vy,
            token_mask=token_mask,
        )
