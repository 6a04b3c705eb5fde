"""
Vector geometry for install-length takeoff.

Points are (x, y, z) tuples or numpy vectors in model units. All functions
are pure and accept either form.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

# Lengths below this are treated as zero
ZERO_LENGTH = 1e-9

PointLike = Sequence[float] | np.ndarray


def as_vector(p: PointLike) -> np.ndarray:
    """Convert a point to a float numpy vector of length 3."""
    v = np.asarray(p, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"Expected a 3-D point, got shape {v.shape}")
    return v


def distance(a: PointLike, b: PointLike) -> float:
    """Euclidean distance between two points."""
    return float(np.linalg.norm(as_vector(b) - as_vector(a)))


def path_length(points: Sequence[PointLike]) -> float:
    """
    Length of the polyline through the given points.

    Used for elbows: S1 -> vertex -> S2 instead of the straight chord.
    """
    return sum(distance(a, b) for a, b in zip(points, points[1:]))


def centroid(points: Sequence[PointLike]) -> np.ndarray:
    """Average of the given points."""
    if not points:
        raise ValueError("Cannot compute the centroid of no points")
    return np.mean(np.array([as_vector(p) for p in points]), axis=0)


def unit_vector(v: PointLike) -> np.ndarray | None:
    """Normalize a vector; None for a (near) zero vector."""
    v = as_vector(v)
    n = float(np.linalg.norm(v))
    if n < ZERO_LENGTH:
        return None
    return v / n


def project_point_to_segment(p: PointLike, a: PointLike, b: PointLike) -> np.ndarray:
    """
    Orthogonal projection of p onto segment a-b, clamped to the segment.

    The projection parameter t is clamped to [0, 1], so a point beyond an
    end projects onto that end. A degenerate segment (a == b) returns a.
    """
    p, a, b = as_vector(p), as_vector(a), as_vector(b)
    ab = b - a
    denom = float(ab @ ab)
    if denom < ZERO_LENGTH * ZERO_LENGTH:
        return a
    t = float((p - a) @ ab) / denom
    t = min(1.0, max(0.0, t))
    return a + t * ab


def distance_to_segment(p: PointLike, a: PointLike, b: PointLike) -> float:
    """Distance from p to its clamped projection on segment a-b."""
    return distance(p, project_point_to_segment(p, a, b))


def most_opposite_pair(points: Sequence[PointLike]) -> tuple[int, int] | None:
    """
    Find the pair of points whose directions from the centroid are most
    nearly opposite (most negative dot product of unit vectors).

    Returns:
        (i, j) indices with i < j, or None when fewer than 3 points are given
        or any point coincides with the centroid (no direction defined).

    Ties keep the first pair found in (i, j) scan order, so the result does
    not depend on floating-point noise between exactly symmetric pairs.
    """
    if len(points) < 3:
        return None

    c = centroid(points)
    units = []
    for p in points:
        u = unit_vector(as_vector(p) - c)
        if u is None:
            return None
        units.append(u)

    best: tuple[int, int] | None = None
    best_dot = 1.0 + 1e-12
    for i in range(len(units)):
        for j in range(i + 1, len(units)):
            dot = float(units[i] @ units[j])
            if dot < best_dot - 1e-12:
                best_dot = dot
                best = (i, j)
    return best
