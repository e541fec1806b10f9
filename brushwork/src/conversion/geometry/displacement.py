"""
Displacement surface meshing.

A displacement turns one four-sided brush face into a ``(2^p+1) x (2^p+1)``
grid of vertices.  Each grid vertex starts on the flat quad (bilinear
interpolation of the four corners), then moves by its stored offset and by
its normal times ``distance + elevation``.

Grid orientation comes from ``startposition``: the quad corner matching it is
the grid origin, and the next three corners around the face loop are the
"row", "opposite" and "column" corners.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple

import numpy as np

from ..errors import DisplacementCornerMismatchError
from ..plane_math import Vec3, add, cross, distance, dot, length_squared, lerp, scale, sub
from ..uv_projection import UVAxis, project_uv

logger = logging.getLogger(__name__)

VALID_POWERS = (2, 3, 4)

# Max distance between startposition and the matching quad corner
DEFAULT_CORNER_TOLERANCE = 0.1


@dataclass
class DisplacementInfo:
    """Parsed ``dispinfo`` block of a VMF side.

    Grids are indexed ``[row][column]`` and are never modified in place;
    :func:`repair_displacement_normals` returns a new instance.
    """
    power: int
    start_position: Vec3
    elevation: float = 0.0
    subdivide: bool = False
    normals: List[List[Vec3]] = field(default_factory=list)
    distances: List[List[float]] = field(default_factory=list)
    offsets: List[List[Vec3]] = field(default_factory=list)
    alphas: List[List[int]] = field(default_factory=list)
    normals_repaired: bool = False

    def __post_init__(self):
        if self.power not in VALID_POWERS:
            raise ValueError(f"Displacement power must be one of {VALID_POWERS}, got {self.power}")

    @property
    def cells(self) -> int:
        """Number of cells along each side of the grid."""
        return 1 << self.power

    @property
    def size(self) -> int:
        """Number of vertices along each side of the grid."""
        return self.cells + 1

    @classmethod
    def flat(cls, power: int, start_position: Vec3, normal: Vec3) -> "DisplacementInfo":
        """A displacement that leaves the quad undeformed."""
        size = (1 << power) + 1
        return cls(
            power=power,
            start_position=start_position,
            normals=[[normal] * size for _ in range(size)],
            distances=[[0.0] * size for _ in range(size)],
            offsets=[[(0.0, 0.0, 0.0)] * size for _ in range(size)],
            alphas=[[0] * size for _ in range(size)],
        )


@dataclass
class DisplacementMesh:
    """Indexed triangle grid produced from one displacement face."""
    positions: np.ndarray  # (N, 3) float32
    normals: np.ndarray    # (N, 3) float32
    uvs: np.ndarray        # (N, 2) float32
    alphas: np.ndarray     # (N,) float32, 0.0-1.0
    indices: np.ndarray    # (M, 3) uint32

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices)

    def triangles(self) -> np.ndarray:
        """Unindexed triangle corner positions, shape (M, 3, 3)."""
        return self.positions[self.indices]


# ---------------------------------------------------------------------------
# Normal / distance repair
# ---------------------------------------------------------------------------

def repair_normal(normal: Vec3, dist: float, face_normal: Vec3) -> Tuple[Vec3, float]:
    """Fix one displacement normal so it is unit length and faces outward.

    - zero normal: use the face normal, distance 0
    - normal pointing into the solid: negate normal and distance
    - non-unit normal: normalize, scale the distance by the old length
    """
    if length_squared(normal) == 0.0:
        normal, dist = face_normal, 0.0
    if dot(normal, face_normal) < 0.0:
        normal, dist = scale(normal, -1.0), -dist
    length_sq = length_squared(normal)
    if length_sq != 1.0:
        ln = math.sqrt(length_sq)
        normal, dist = scale(normal, 1.0 / ln), dist * ln
    return normal, dist


def repair_displacement_normals(info: DisplacementInfo, face_normal: Vec3) -> DisplacementInfo:
    """Return a copy of ``info`` with every normal/distance pair repaired."""
    normals: List[List[Vec3]] = []
    distances: List[List[float]] = []
    for normal_row, distance_row in zip(info.normals, info.distances):
        repaired = [repair_normal(n, d, face_normal) for n, d in zip(normal_row, distance_row)]
        normals.append([n for n, _ in repaired])
        distances.append([d for _, d in repaired])
    return replace(info, normals=normals, distances=distances, normals_repaired=True)


# ---------------------------------------------------------------------------
# Tessellation
# ---------------------------------------------------------------------------

def find_start_corner(corners: Sequence[Vec3], start_position: Vec3,
                      tolerance: float = DEFAULT_CORNER_TOLERANCE) -> int:
    """Index of the quad corner closest to ``start_position``.

    Raises:
        DisplacementCornerMismatchError: If the face is not a quad or no
            corner lies within ``tolerance``.
    """
    if len(corners) != 4:
        raise DisplacementCornerMismatchError(
            f"Displacement face has {len(corners)} vertices, expected 4"
        )
    best = min(range(4), key=lambda i: distance(corners[i], start_position))
    if distance(corners[best], start_position) > tolerance:
        raise DisplacementCornerMismatchError(
            f"No face corner within {tolerance} of start position {start_position}"
        )
    return best


def tessellate_displacement(corners: Sequence[Vec3], info: DisplacementInfo,
                            face_normal: Vec3, u_axis: UVAxis, v_axis: UVAxis,
                            tolerance: float = DEFAULT_CORNER_TOLERANCE) -> DisplacementMesh:
    """Expand a displacement quad into a deformed triangle grid.

    Args:
        corners: The four face vertices in loop order.
        info: Displacement data; repaired here unless already repaired.
        face_normal: Outward unit normal of the brush face.
        u_axis, v_axis: Texture axes of the face.
        tolerance: Max distance between start position and a corner.

    Raises:
        DisplacementCornerMismatchError: If the start corner can't be found.
    """
    if not info.normals_repaired:
        info = repair_displacement_normals(info, face_normal)

    start = find_start_corner(corners, info.start_position, tolerance)
    origin, row_corner, opposite, column_corner = (corners[(start + k) % 4] for k in range(4))

    cells = info.cells
    size = info.size
    positions: List[Vec3] = []
    uvs: List[Tuple[float, float]] = []
    normals: List[Vec3] = []
    alphas: List[float] = []
    for row in range(size):
        row_frac = row / cells
        near = lerp(origin, row_corner, row_frac)
        far = lerp(column_corner, opposite, row_frac)
        for col in range(size):
            base = lerp(near, far, col / cells)
            normal = info.normals[row][col]
            lift = info.distances[row][col] + info.elevation
            position = add(add(base, info.offsets[row][col]), scale(normal, lift))
            positions.append(position)
            normals.append(normal)
            uvs.append(project_uv(u_axis, v_axis, position))
            alphas.append(info.alphas[row][col] / 255.0)

    # The (r,c),(r,c+1),(r+1,c) split winds by column x row; flip both
    # triangles when that points into the solid.
    flip = dot(cross(sub(column_corner, origin), sub(row_corner, origin)), face_normal) < 0.0
    indices: List[Tuple[int, int, int]] = []
    for row in range(cells):
        for col in range(cells):
            a = row * size + col
            b = a + 1
            c = a + size
            d = c + 1
            if flip:
                indices.append((a, c, b))
                indices.append((c, d, b))
            else:
                indices.append((a, b, c))
                indices.append((c, b, d))

    logger.debug("Tessellated displacement power %d: %d triangles", info.power, len(indices))
    return DisplacementMesh(
        positions=np.array(positions, dtype=np.float32),
        normals=np.array(normals, dtype=np.float32),
        uvs=np.array(uvs, dtype=np.float32),
        alphas=np.array(alphas, dtype=np.float32),
        indices=np.array(indices, dtype=np.uint32),
    )
