"""Map bounds and position checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass
class Rect:
    """An axis-aligned rectangle given by half-extents around a centre."""

    x: int
    y: int
    center_x: int = 0
    center_y: int = 0

    def start_x(self) -> int:
        return self.center_x - self.x

    def start_y(self) -> int:
        return self.center_y - self.y

    def end_x(self) -> int:
        return self.center_x + self.x

    def end_y(self) -> int:
        return self.center_y + self.y


class MapInfo:
    """A map centred on the origin, sized in tiles."""

    SCALE = 500

    def __init__(self, x: int, y: int) -> None:
        self._map = Rect(x * self.SCALE - 100, y * self.SCALE - 100)

    def map(self) -> Rect:
        return self._map

    def in_rect(self, x: int, y: int, rect: Rect) -> bool:
        """Whether the point lies strictly inside ``rect``."""
        return rect.start_x() < x < rect.end_x() and rect.start_y() < y < rect.end_y()

    def clamp_to_monster_rect(self, x: int, y: int) -> Tuple[int, int, bool]:
        """Pull a point back onto the map edge; the flag tells whether it was outside."""
        rect = self._map
        clamped = False
        if x < rect.start_x():
            x, clamped = rect.start_x(), True
        elif x > rect.end_x():
            x, clamped = rect.end_x(), True
        if y < rect.start_y():
            y, clamped = rect.start_y(), True
        elif y > rect.end_y():
            y, clamped = rect.end_y(), True
        return x, y, clamped