"""Coordinate and geometry mapping between the tabletop and the 3D scene.

The tabletop uses pixel-like units with +X right and +Y down; the scene is
metric and Y-up, with the tabletop's Y axis running along -Z.  One grid cell
(50px) maps to one metre.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]

# ---------------- Constants ----------------

SCALE_FACTOR = 0.02
SIZE_FACTOR = 1.0
IDENTITY_ROTATION: Vec3 = (0.0, 0.0, 0.0)
ORIGIN: Vec3 = (0.0, 0.0, 0.0)

__all__ = [
    "Vec3",
    "SCALE_FACTOR",
    "SIZE_FACTOR",
    "IDENTITY_ROTATION",
    "ORIGIN",
    "to_center_position",
    "to_uniform_scale",
    "edge_to_center",
    "offset",
    "euler_to_matrix",
    "is_identity_rotation",
    "to_local",
    "clamp01",
]


def to_center_position(x: float, y: float) -> Vec3:
    """Map a tabletop (x, y) to the scene frame before any per-type offset."""
    return (float(x) * SCALE_FACTOR, 0.0, -float(y) * SCALE_FACTOR)


def to_uniform_scale(size: float) -> float:
    return float(size) * SIZE_FACTOR


def offset(position: Sequence[float], dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> Vec3:
    return (float(position[0]) + dx, float(position[1]) + dy, float(position[2]) + dz)


def edge_to_center(position: Sequence[float], width: float, height: float, lift: float = 0.0) -> Vec3:
    """Shift an edge-anchored footprint of ``width`` x ``height`` to its centre.

    ``lift`` is the vertical component (half the object's height for upright
    objects, a small z-fighting offset for flat ones).
    """
    return offset(position, width / 2.0, lift, -height / 2.0)


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


# ---------------- Rotation helpers ----------------

def _axis_matrix(axis: str, degrees: float) -> np.ndarray:
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    if axis == "x":
        return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])
    if axis == "y":
        return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def euler_to_matrix(euler_deg: Sequence[float]) -> np.ndarray:
    """Rotation matrix for Euler degrees applied Z, then X, then Y (Y-up engine order)."""
    ex, ey, ez = (float(v) for v in euler_deg)
    return _axis_matrix("y", ey) @ _axis_matrix("x", ex) @ _axis_matrix("z", ez)


def is_identity_rotation(euler_deg: Sequence[float], tol: float = 1e-9) -> bool:
    return all(abs(float(v)) <= tol for v in euler_deg)


def to_local(points: Iterable[Sequence[float]], euler_deg: Sequence[float]) -> list[Vec3]:
    """Express parent-frame offsets in the frame of a child rotated by ``euler_deg``."""
    pts = np.asarray(list(points), dtype=float).reshape(-1, 3)
    local = pts @ euler_to_matrix(euler_deg)
    # Row vectors: p @ R == R^T p. Round away float noise so signatures stay stable.
    local = np.round(local, 9) + 0.0
    return [tuple(float(c) for c in row) for row in local]
