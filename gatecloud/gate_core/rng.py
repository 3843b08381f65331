"""
RNG - Gate Queue and Jitter Source
==================================

The gate queue is the ordered list of labels to drop, walked by a
monotonic spawn cursor. It is either taken verbatim from the config or
generated through a weighted shuffle-bag so random queues keep a
predictable mix of gates.

A single seeded random.Random drives queue generation, spawn offsets and
collision jitter so a seed reproduces a whole session.
"""

from __future__ import annotations

import random
from typing import List, Optional, Sequence, Tuple

from gatecloud.gate_core.config_loader import GameConfig, get_config


def shuffle_bag(
    gate_set: Sequence[str],
    weights: Sequence[int],
    length: int,
    rng: random.Random
) -> List[str]:
    """
    Generate a gate sequence from refilling, shuffled weighted bags.

    Args:
        gate_set: Gate labels.
        weights: Copies of each label per bag.
        length: Number of gates to generate.
        rng: Random source.

    Returns:
        List of gate labels.
    """
    template: List[str] = []
    for gate, weight in zip(gate_set, weights):
        template.extend([gate] * max(0, int(weight)))
    if not template:
        template = list(gate_set)

    result: List[str] = []
    while len(result) < length:
        bag = template.copy()
        rng.shuffle(bag)
        result.extend(bag)
    return result[:length]


class GateQueue:
    """
    Ordered gate queue with a spawn cursor.

    The cursor only moves forward; advancing an exhausted queue is a no-op
    that returns None.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
        gates: Optional[Sequence[str]] = None
    ):
        """
        Initialize gate queue.

        Args:
            config: Game configuration. Uses default if None.
            seed: Random seed for reproducibility. Random if None.
            gates: Explicit queue, overriding the config.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._rng = random.Random(seed)
        self._override: Optional[Tuple[str, ...]] = (
            tuple(g.upper() for g in gates) if gates is not None else None
        )
        self._gates: List[str] = []
        self._cursor: int = 0
        self._build()

    def _build(self) -> None:
        """Build the queue from the override, the config or the shuffle-bag."""
        gates_config = self._config.gates
        if self._override is not None:
            self._gates = list(self._override)
        elif gates_config.random_length > 0:
            self._gates = shuffle_bag(
                gates_config.gate_set,
                gates_config.weights,
                gates_config.random_length,
                self._rng
            )
        else:
            self._gates = list(gates_config.queue)
        self._cursor = 0

    @property
    def rng(self) -> random.Random:
        """Shared seeded random source."""
        return self._rng

    @property
    def gates(self) -> Tuple[str, ...]:
        return tuple(self._gates)

    @property
    def cursor(self) -> int:
        """Number of gates already spawned."""
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._gates) - self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._gates)

    def __len__(self) -> int:
        return len(self._gates)

    def advance(self) -> Optional[str]:
        """
        Consume the next gate.

        Returns:
            The gate label, or None if the queue is exhausted.
        """
        if self.exhausted:
            return None
        gate = self._gates[self._cursor]
        self._cursor += 1
        return gate

    def peek(self, count: int = 2) -> List[str]:
        """Upcoming gates without consuming them."""
        return self._gates[self._cursor:self._cursor + count]

    def reset(self, seed: Optional[int] = None) -> None:
        """
        Rewind the cursor (and regenerate random queues).

        Args:
            seed: New random seed. Keeps the current stream if None.
        """
        if seed is not None:
            self._rng = random.Random(seed)
        self._build()
