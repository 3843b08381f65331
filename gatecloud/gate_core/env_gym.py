"""
Gymnasium Environment Wrapper
=============================

Provides a standard Gymnasium interface to the gate cloud game.

Each step sets every force source (angle and on/off) and then runs a fixed
number of frames on a simulated clock. Reward is the score gained during
the step, plus the target bonus when the game ends with every qubit on
target.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

import gymnasium as gym
from gymnasium import spaces

from gatecloud.gate_core.config_loader import EXTENDED_GATE_SET, GameConfig, load_config
from gatecloud.gate_core.game import GateCloudGame, SessionState
from gatecloud.gate_core.state_snapshot import SESSION_STATES

logger = logging.getLogger(__name__)


class GateCloudEnv(gym.Env):
    """
    Gate cloud game as a Gymnasium environment.

    Action Space:
        Box(low=-1.0, high=1.0, shape=(num_sources, 2), dtype=float32)
        Column 0 maps to each source's angle range, column 1 > 0 holds the
        source active.

    Observation Space:
        Dict with session counters, qubit values, force source settings and
        padded token arrays.

    Info:
        Contains score, delta_score, qubit labels, target_passed, etc.
    """

    metadata = {
        "render_modes": [],
        "render_fps": 60,
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        variant: Optional[str] = None,
        config: Optional[GameConfig] = None,
        gates: Optional[Sequence[str]] = None,
        frames_per_step: Optional[int] = None,
        debug: bool = False,
    ):
        """
        Initialize the environment.

        Args:
            config_path: Path to a config YAML. Uses the bundled file if None.
            variant: Bundled variant ("deflector" or "pinball").
            config: Already-loaded config; takes precedence over the path.
            gates: Explicit gate queue, overriding the config.
            frames_per_step: Frames simulated per step. Uses config if None.
            debug: If True, logs a summary of every step at DEBUG level.
        """
        super().__init__()

        self._config = config if config is not None else load_config(config_path, variant)
        self._debug = debug
        self._frames_per_step = frames_per_step or self._config.observation.frames_per_step
        self._frame_seconds = self._config.observation.frame_seconds
        self._max_steps = self._config.observation.max_steps

        # Simulated clock shared with the game
        self._time = 0.0
        self._steps = 0
        self._game = GateCloudGame(config=self._config, clock=self._now, gates=gates)
        self._source_ids = [s.id for s in self._game.force_sources]

        self.action_space = spaces.Box(
            low=-1.0,
            high=1.0,
            shape=(len(self._source_ids), 2),
            dtype=np.float32
        )
        self.observation_space = self._build_observation_space()

        if self._debug:
            logger.debug("GateCloudEnv initialized")
            logger.debug("  Variant: %s", self._config.variant)
            logger.debug("  Force sources: %s", self._source_ids)
            logger.debug("  Frames per step: %d", self._frames_per_step)

    def _now(self) -> float:
        return self._time

    def _build_observation_space(self) -> spaces.Dict:
        """Build the observation space definition."""
        max_tokens = self._config.observation.max_tokens
        num_qubits = len(self._config.qubits.ids)
        num_sources = len(self._source_ids)
        int_max = np.iinfo(np.int64).max

        return spaces.Dict({
            "state": spaces.Discrete(len(SESSION_STATES)),
            "score": spaces.Box(low=0, high=int_max, shape=(), dtype=np.int64),
            "combo": spaces.Box(low=0, high=np.iinfo(np.int32).max, shape=(), dtype=np.int32),
            "dustbin_count": spaces.Box(low=0, high=np.iinfo(np.int32).max, shape=(), dtype=np.int32),
            "gates_remaining": spaces.Box(low=0, high=np.iinfo(np.int32).max, shape=(), dtype=np.int32),
            "qubit_values": spaces.Box(low=0.0, high=1.0, shape=(num_qubits,), dtype=np.float32),
            "source_angle": spaces.Box(low=-360.0, high=360.0, shape=(num_sources,), dtype=np.float32),
            "source_active": spaces.MultiBinary(num_sources),
            "token_gate": spaces.Box(
                low=-1, high=len(EXTENDED_GATE_SET) - 1, shape=(max_tokens,), dtype=np.int16
            ),
            "token_x": spaces.Box(low=-np.inf, high=np.inf, shape=(max_tokens,), dtype=np.float32),
            "token_y": spaces.Box(low=-np.inf, high=np.inf, shape=(max_tokens,), dtype=np.float32),
            "token_vx": spaces.Box(low=-np.inf, high=np.inf, shape=(max_tokens,), dtype=np.float32),
            "token_vy": spaces.Box(low=-np.inf, high=np.inf, shape=(max_tokens,), dtype=np.float32),
            "token_mask": spaces.MultiBinary(max_tokens),
        })

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, np.ndarray], Dict[str, Any]]:
        """
        Reset the environment and start a new game.

        Args:
            seed: Random seed for reproducibility.
            options: Optional {"layout": [...]} to install a layout.

        Returns:
            (observation, info) tuple.
        """
        super().reset(seed=seed)

        self._time = 0.0
        self._steps = 0
        self._game.reset(seed=seed)
        if options and "layout" in options:
            self._game.provide_layout(options["layout"])
        self._game.start()
        self._game.tick(self._time)

        info = self._game.get_info()
        info["delta_score"] = 0
        info["target_passed"] = False
        return self._observation(), info

    def step(
        self,
        action: np.ndarray
    ) -> Tuple[Dict[str, np.ndarray], float, bool, bool, Dict[str, Any]]:
        """
        Execute one step.

        Args:
            action: Array of shape (num_sources, 2) in [-1, 1].

        Returns:
            (observation, reward, terminated, truncated, info) tuple.
        """
        self._apply_action(action)

        delta_score = 0
        ended = False
        for _ in range(self._frames_per_step):
            self._time += self._frame_seconds
            result = self._game.tick(self._time)
            delta_score += result.delta_score
            if result.ended:
                ended = True
                break

        self._steps += 1
        target = self._game.evaluate_target()
        reward = float(delta_score)
        if ended and target.passed:
            reward += float(self._config.scoring.target_bonus)

        terminated = ended or self._game.state == SessionState.STOPPED
        truncated = not terminated and self._steps >= self._max_steps

        info = self._game.get_info()
        info["delta_score"] = delta_score
        info["target_passed"] = target.passed

        if self._debug:
            logger.debug(
                "Step %d: delta_score=%d, tokens=%d, qubits=%s",
                self._steps, delta_score, info["active_tokens"], info["qubits"]
            )
            if terminated:
                logger.debug("TERMINATED: target_passed=%s", target.passed)

        return self._observation(), reward, terminated, truncated, info

    def _apply_action(self, action: np.ndarray) -> None:
        """Queue force source commands for the action."""
        action = np.asarray(action, dtype=np.float32).reshape(len(self._source_ids), 2)
        action = np.clip(action, -1.0, 1.0)
        for source_id, (angle_norm, active) in zip(self._source_ids, action):
            source = self._game.get_force_source(source_id)
            t = (float(angle_norm) + 1.0) / 2.0
            degrees = source.min_angle + t * (source.max_angle - source.min_angle)
            self._game.set_force_angle(source_id, degrees)
            self._game.set_force_active(source_id, bool(active > 0.0))

    def _observation(self) -> Dict[str, np.ndarray]:
        return self._game.build_snapshot().to_obs_dict()

    def close(self) -> None:
        """Nothing to release; kept for the Gymnasium API."""

    @property
    def game(self) -> GateCloudGame:
        """Access to underlying game (for debugging/tools)."""
        return self._game

    @property
    def config(self) -> GameConfig:
        """Game configuration."""
        return self._config
