"""
Command Queue
=============

Inbound player intent. Commands are queued between ticks and applied at
the start of the next tick, in arrival order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional


CMD_START = "start"
CMD_PAUSE = "pause"
CMD_RESET = "reset"
CMD_CHECK_TARGET = "check_target"
CMD_SET_FORCE_ANGLE = "set_force_angle"
CMD_SET_FORCE_ACTIVE = "set_force_active"
CMD_PROVIDE_LAYOUT = "provide_layout"
CMD_TOGGLE = "toggle"          # Start/resume when idle, pause when running

COMMANDS = (
    CMD_START,
    CMD_PAUSE,
    CMD_RESET,
    CMD_CHECK_TARGET,
    CMD_SET_FORCE_ANGLE,
    CMD_SET_FORCE_ACTIVE,
    CMD_PROVIDE_LAYOUT,
    CMD_TOGGLE,
)

# Keyboard shortcuts of the browser game
KEY_BINDINGS: Dict[str, str] = {
    " ": CMD_TOGGLE,
    "space": CMD_TOGGLE,
    "r": CMD_RESET,
    "c": CMD_CHECK_TARGET,
}


@dataclass(frozen=True)
class Command:
    """A single queued command."""
    kind: str
    args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in COMMANDS:
            raise ValueError(f"Unknown command: {self.kind}")


def command_for_key(key: str) -> Optional[Command]:
    """Map a key press to a command, or None for unbound keys."""
    kind = KEY_BINDINGS.get(key if key == " " else key.lower())
    if kind is None:
        return None
    return Command(kind)


class CommandQueue:
    """FIFO of commands consumed once per tick."""

    def __init__(self):
        self._queue: Deque[Command] = deque()

    def push(self, kind: str, **args: Any) -> Command:
        command = Command(kind, args)
        self._queue.append(command)
        return command

    def push_command(self, command: Command) -> None:
        self._queue.append(command)

    def drain(self) -> List[Command]:
        commands = list(self._queue)
        self._queue.clear()
        return commands

    def clear(self) -> None:
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._queue)
