"""
Plane geometry for VMF brush faces.

Primary representation: a point on the plane plus a unit outward normal.
Built from the three affine points stored in each VMF ``side``; the points are
wound so that ``(p2 - p0) x (p1 - p0)`` points away from the brush interior.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import MalformedPlaneError

Vec3 = Tuple[float, float, float]

EPSILON = 1e-6


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def scale(v: Vec3, s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def length_squared(v: Vec3) -> float:
    return v[0] * v[0] + v[1] * v[1] + v[2] * v[2]


def normalize(v: Vec3) -> Vec3:
    """Return ``v`` scaled to unit length, or ``v`` itself when it is zero."""
    ln = length(v)
    if ln == 0.0:
        return v
    return (v[0] / ln, v[1] / ln, v[2] / ln)


def lerp(a: Vec3, b: Vec3, t: float) -> Vec3:
    return (
        a[0] + (b[0] - a[0]) * t,
        a[1] + (b[1] - a[1]) * t,
        a[2] + (b[2] - a[2]) * t,
    )


def distance(a: Vec3, b: Vec3) -> float:
    return length(sub(a, b))


def newell_normal(points: Sequence[Vec3]) -> Vec3:
    """Unit normal of a planar polygon (Newell's method, CCW = right hand)."""
    nx = ny = nz = 0.0
    count = len(points)
    for i in range(count):
        cx, cy, cz = points[i]
        nx_, ny_, nz_ = points[(i + 1) % count]
        nx += (cy - ny_) * (cz + nz_)
        ny += (cz - nz_) * (cx + nx_)
        nz += (cx - nx_) * (cy + ny_)
    return normalize((nx, ny, nz))


# ---------------------------------------------------------------
# Line / plane intersection
# ---------------------------------------------------------------

def line_plane_intersection(line_point: Vec3, line_direction: Vec3,
                            plane_point: Vec3, plane_normal: Vec3) -> Optional[Vec3]:
    """Intersect an infinite line with a plane.

    Returns None when the line is parallel to the plane.
    """
    divisor = dot(line_direction, plane_normal)
    if divisor == 0.0:
        return None
    d = dot(sub(plane_point, line_point), plane_normal) / divisor
    return add(line_point, scale(line_direction, d))


@dataclass(frozen=True)
class BrushPlane:
    """A brush face plane: a point on it and the unit outward normal."""

    point: Vec3
    normal: Vec3

    @classmethod
    def from_three_points(cls, p0: Vec3, p1: Vec3, p2: Vec3) -> "BrushPlane":
        """Compute the outward plane of a VMF side.

        Raises:
            MalformedPlaneError: If the points are duplicate or collinear.
        """
        raw = cross(sub(p2, p0), sub(p1, p0))
        if length(raw) < EPSILON:
            raise MalformedPlaneError(
                f"Plane points {p0}, {p1}, {p2} are collinear or duplicate"
            )
        return cls(point=p0, normal=normalize(raw))

    @property
    def dist(self) -> float:
        """Distance from the origin along the normal (idTech ``dist``)."""
        return dot(self.normal, self.point)

    def signed_distance(self, point: Vec3) -> float:
        """Positive in front of the plane (outside the brush)."""
        return dot(sub(point, self.point), self.normal)
