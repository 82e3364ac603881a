"""Monotonic clock and 2D vector helpers."""

from __future__ import annotations

import math
import time
from typing import Tuple


def tick_count_ms() -> int:
    """Milliseconds from a monotonic clock."""
    return time.monotonic_ns() // 1_000_000


def dot_product(x1: float, y1: float, x2: float, y2: float) -> float:
    return x1 * x2 + y1 * y2


def cross_product(x1: float, y1: float, x2: float, y2: float) -> float:
    """Z component of the cross product; its sign gives the turn direction."""
    return x1 * y2 - x2 * y1


def magnitude(x: float, y: float) -> float:
    return math.sqrt(x * x + y * y)


def normalize(x: float, y: float) -> Tuple[float, float]:
    """Unit vector in the same direction; the zero vector is returned unchanged."""
    mag = magnitude(x, y)
    if mag == 0.0:
        return x, y
    return x / mag, y / mag


def radian_to_degree(radian: float) -> float:
    return radian * 180.0 / math.pi


def calculate_angle(x1: float, y1: float, x2: float, y2: float) -> float:
    """Signed angle in degrees from the +X axis to the vector from point 1 to point 2."""
    x, y = normalize(x2 - x1, y2 - y1)
    forward_x, forward_y = 1.0, 0.0
    dot = max(-1.0, min(1.0, dot_product(forward_x, forward_y, x, y)))
    angle = radian_to_degree(math.acos(dot))
    if cross_product(forward_x, forward_y, x, y) > 0:
        return angle
    return -angle