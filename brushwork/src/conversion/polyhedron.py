"""
Convex polyhedron clipping.

A :class:`Polyhedron` is a shared vertex list plus faces, each face a payload
and a closed loop of vertex indices wound counter-clockwise when seen from
outside.  :func:`clip_polyhedron_to_plane` removes everything in front of a
plane and closes the hole with a new "cap" face.  Brushes are built by
clipping an oversized cube once per brush side (see
``geometry/brush_builder.py``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Sequence, Tuple, TypeVar

from .errors import ClipTopologyError
from .plane_math import Vec3, dot, line_plane_intersection, newell_normal, sub

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Distance (in map units, for a unit normal) within which a vertex counts as on the plane
CLIP_EPSILON = 1e-6


@dataclass
class Polyhedron(Generic[T]):
    """Vertices plus tagged face loops.

    Attributes:
        vertices: Unique points; clipping only ever appends to this list.
        faces: ``(payload, loop)`` pairs, loop = indices into ``vertices``.
    """
    vertices: List[Vec3] = field(default_factory=list)
    faces: List[Tuple[T, List[int]]] = field(default_factory=list)

    def face_points(self, face_index: int) -> List[Vec3]:
        _, loop = self.faces[face_index]
        return [self.vertices[i] for i in loop]

    def face_normal(self, face_index: int) -> Vec3:
        """Outward unit normal computed from the loop winding."""
        return newell_normal(self.face_points(face_index))

    def untagged_faces(self) -> List[int]:
        """Indices of faces whose payload is None."""
        return [i for i, (info, _) in enumerate(self.faces) if info is None]

    def used_vertex_indices(self) -> List[int]:
        """Sorted indices referenced by at least one face loop."""
        return sorted({i for _, loop in self.faces for i in loop})

    def bounds(self) -> Tuple[Vec3, Vec3]:
        """Axis-aligned bounds of the vertices referenced by faces."""
        used = [self.vertices[i] for i in self.used_vertex_indices()]
        if not used:
            return ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        return (
            (min(v[0] for v in used), min(v[1] for v in used), min(v[2] for v in used)),
            (max(v[0] for v in used), max(v[1] for v in used), max(v[2] for v in used)),
        )

    def check_loops(self) -> None:
        """Raise ValueError if a loop is too short or holds a bad index."""
        count = len(self.vertices)
        for face_index, (_, loop) in enumerate(self.faces):
            if len(loop) < 3:
                raise ValueError(f"Face {face_index} has only {len(loop)} vertices")
            for i in loop:
                if not 0 <= i < count:
                    raise ValueError(f"Face {face_index} references missing vertex {i}")


def _split_loop(loop: Sequence[int], outside: Sequence[bool]) -> Tuple[int, List[int], int]:
    """Split a mixed face loop at its plane crossings.

    Returns ``(last_outside, inside_run, next_outside)`` where ``inside_run``
    is the contiguous run of kept vertices in loop order.
    """
    count = len(loop)
    # outside[k - 1] wraps to the last vertex for k == 0
    starts = [k for k in range(count) if outside[k - 1] and not outside[k]]
    if len(starts) != 1:
        raise ClipTopologyError(
            f"Face loop {list(loop)} crosses the clip plane {2 * len(starts)} times"
        )
    start = starts[0]
    run = []
    k = start
    while not outside[k % count]:
        run.append(loop[k % count])
        k += 1
    return loop[start - 1], run, loop[k % count]


def _collapse_repeats(loop: Sequence[int]) -> List[int]:
    """Drop cyclically consecutive duplicate indices."""
    result: List[int] = []
    for index in loop:
        if not result or result[-1] != index:
            result.append(index)
    while len(result) > 1 and result[0] == result[-1]:
        result.pop()
    return result


def stitch_cap_loop(edges: Dict[int, int]) -> List[int]:
    """Follow a ``source -> target`` edge map from its first key back to it.

    Raises:
        ClipTopologyError: If the edges are not exactly one closed cycle.
    """
    start = next(iter(edges))
    loop = [start]
    current = edges[start]
    while current != start:
        if len(loop) > len(edges):
            raise ClipTopologyError("Cap edges never return to their start vertex")
        loop.append(current)
        try:
            current = edges[current]
        except KeyError:
            raise ClipTopologyError(f"Cap vertex {current} has no outgoing edge") from None
    if len(loop) != len(edges):
        raise ClipTopologyError(
            f"Cap edges form more than one loop ({len(edges)} edges, {len(loop)} in the first)"
        )
    return loop


def clip_polyhedron_to_plane(poly: Polyhedron[T], plane_point: Vec3, plane_normal: Vec3,
                             new_face_info: T, epsilon: float = CLIP_EPSILON) -> None:
    """Clip ``poly`` in place, keeping the half-space behind the plane.

    Vertices with ``dot(v - plane_point, plane_normal) > epsilon`` are
    removed.  Vertices within ``epsilon`` of the plane are kept unchanged and
    serve as their own crossing points, so clipping twice with the same plane
    changes nothing.  Faces cut by the plane are shortened, and the
    cross-section becomes one new face carrying ``new_face_info``.

    Raises:
        ClipTopologyError: If a face crosses the plane more than twice or the
            cross-section edges do not close into one loop (non-convex or
            degenerate input).
    """
    sides = [dot(sub(v, plane_point), plane_normal) for v in poly.vertices]
    lookup: Dict[Vec3, int] = {}
    for index, vertex in enumerate(poly.vertices):
        lookup.setdefault(vertex, index)

    def crossing(outside_index: int, inside_index: int) -> int:
        if sides[inside_index] >= -epsilon:
            return inside_index
        inside = poly.vertices[inside_index]
        point = line_plane_intersection(
            inside, sub(poly.vertices[outside_index], inside), plane_point, plane_normal
        )
        index = lookup.get(point)
        if index is None:
            poly.vertices.append(point)
            index = len(poly.vertices) - 1
            lookup[point] = index
        return index

    new_faces: List[Tuple[T, List[int]]] = []
    cap_edges: Dict[int, int] = {}
    for info, loop in poly.faces:
        outside = [sides[i] > epsilon for i in loop]
        if not any(outside):
            new_faces.append((info, loop))
            continue
        if all(outside):
            continue

        last_outside, run, next_outside = _split_loop(loop, outside)
        entry = crossing(last_outside, run[0])
        exit_ = crossing(next_outside, run[-1])

        if entry != exit_:
            if entry in cap_edges:
                raise ClipTopologyError(f"Cap vertex {entry} starts two edges")
            cap_edges[entry] = exit_

        new_loop = _collapse_repeats([exit_, entry] + run)
        if len(new_loop) >= 3:
            new_faces.append((info, new_loop))
        else:
            logger.debug("Face %s only touches the clip plane, dropped", loop)

    if cap_edges:
        cap = stitch_cap_loop(cap_edges)
        if len(cap) >= 3:
            new_faces.append((new_face_info, cap))
        else:
            logger.debug("Clip plane only grazes the solid, no cap added")

    poly.faces = new_faces

