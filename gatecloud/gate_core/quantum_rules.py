"""
Quantum-State Transition Rule
=============================

Reduces a qubit's ordered gate sequence to a discrete display state.

This is a deliberately simplified model: the state is a single number
(0 = ground, 1 = excited, anything else = superposition), not a complex
amplitude vector.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


STATE_ZERO = 0.0
STATE_ONE = 1.0
STATE_SUPERPOSITION = 0.5

LABEL_ZERO = "|0⟩"
LABEL_ONE = "|1⟩"
LABEL_SUPERPOSITION = "|+⟩"

# Only these labels change the display state; P, CNOT and M act on
# collisions alone.
STATE_GATES = ("X", "Y", "H", "Z")


class QubitState(str, Enum):
    """Discrete display state of a qubit."""
    ZERO = LABEL_ZERO
    ONE = LABEL_ONE
    SUPERPOSITION = LABEL_SUPERPOSITION

    @classmethod
    def from_value(cls, value: float) -> "QubitState":
        if value == STATE_ZERO:
            return cls.ZERO
        if value == STATE_ONE:
            return cls.ONE
        return cls.SUPERPOSITION


def apply_gate(state: float, gate: str) -> float:
    """
    Apply one gate to a numeric state.

    Args:
        state: Current numeric state.
        gate: Gate label.

    Returns:
        New numeric state.
    """
    if gate not in STATE_GATES:
        return state
    if gate == "H":
        if state in (STATE_ZERO, STATE_ONE):
            return STATE_SUPERPOSITION
        return state
    if gate in ("X", "Y"):
        if state == STATE_ZERO:
            return STATE_ONE
        if state == STATE_ONE:
            return STATE_ZERO
        return 1.0 - state
    # Z is phase-only
    return state


def fold_gates(gates: Iterable[str]) -> float:
    """Fold a gate sequence from the ground state."""
    state = STATE_ZERO
    for gate in gates:
        state = apply_gate(state, gate)
    return state


def state_label(value: float) -> str:
    return QubitState.from_value(value).value


def display_label(gates: Iterable[str]) -> str:
    """Display label for a gate sequence, recomputed from scratch."""
    return state_label(fold_gates(gates))
