"""
Layout Snapshot
===============

Parses the layout handed over by the presentation layer (zones, obstacles,
walls and force-source anchors) into engine records.

The presentation layer reports plain dicts of the form
``{"id", "type", "x", "y", "width", "height", "gate"}`` where ``(x, y)`` is
the top-left corner of the element's bounding box in engine coordinates.
Malformed entries are skipped with a warning rather than raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ITEM_QUBIT = "qubit"
ITEM_DUSTBIN = "dustbin"
ITEM_DEFLECTOR = "deflector"
ITEM_BLOCK = "block"
ITEM_WALL = "wall"
ITEM_FORCE_SOURCE = "force_source"
ITEM_LANDING = "landing"

ITEM_TYPES = (
    ITEM_QUBIT,
    ITEM_DUSTBIN,
    ITEM_DEFLECTOR,
    ITEM_BLOCK,
    ITEM_WALL,
    ITEM_FORCE_SOURCE,
    ITEM_LANDING,
)

# Presentation layers tend to use their own element names
_TYPE_ALIASES = {
    "emitter": ITEM_FORCE_SOURCE,
    "flipper": ITEM_FORCE_SOURCE,
    "quantum_block": ITEM_BLOCK,
    "quantum-block": ITEM_BLOCK,
    "bin": ITEM_DUSTBIN,
}


@dataclass(frozen=True)
class LayoutItem:
    """One element of the presentation layout, as a bounding box."""
    id: str
    type: str
    x: float
    y: float
    width: float
    height: float
    gate: Optional[str] = None

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass
class LayoutSnapshot:
    """
    A full layout snapshot, grouped by element type.

    Items keep the order in which the presentation layer reported them;
    zone resolution relies on that order.
    """
    items: List[LayoutItem] = field(default_factory=list)

    def of_type(self, item_type: str) -> List[LayoutItem]:
        return [item for item in self.items if item.type == item_type]

    def get(self, item_id: str) -> Optional[LayoutItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def landing_y(self) -> Optional[float]:
        """Top of the landing strip, if the presentation layer reported one."""
        strips = self.of_type(ITEM_LANDING)
        if not strips:
            return None
        return min(item.y for item in strips)

    def __len__(self) -> int:
        return len(self.items)


def parse_layout_item(data: Dict[str, Any]) -> Optional[LayoutItem]:
    """
    Parse a single layout dict.

    Args:
        data: Dict with at least id, type, x, y.

    Returns:
        LayoutItem, or None if the entry is malformed.
    """
    try:
        item_type = str(data["type"]).lower()
        item_type = _TYPE_ALIASES.get(item_type, item_type)
        if item_type not in ITEM_TYPES:
            logger.warning("Skipping layout item with unknown type: %r", data)
            return None
        gate = data.get("gate")
        return LayoutItem(
            id=str(data.get("id", item_type)),
            type=item_type,
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
            gate=str(gate).upper() if gate is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Skipping malformed layout item %r: %s", data, exc)
        return None


def parse_layout(items: Iterable[Any]) -> LayoutSnapshot:
    """
    Build a LayoutSnapshot from dicts or LayoutItem instances.

    Args:
        items: Iterable of layout dicts (or already-parsed LayoutItems).

    Returns:
        LayoutSnapshot with all well-formed items.
    """
    parsed: List[LayoutItem] = []
    for data in items or ():
        if isinstance(data, LayoutItem):
            parsed.append(data)
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping non-dict layout item: %r", data)
            continue
        item = parse_layout_item(data)
        if item is not None:
            parsed.append(item)
    return LayoutSnapshot(items=parsed)
