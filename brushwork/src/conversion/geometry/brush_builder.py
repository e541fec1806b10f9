"""
Brush geometry construction.

Converts a brush's half-space description (one plane per face) into an
explicit convex polyhedron: start from a cube larger than any legal map and
clip it once per face, in face order.  Each clip tags the new cap face with
the brush face that produced it, so a closed brush ends with no untagged
(``None``) faces left.

Displacement faces are expanded afterwards into triangle grids.

Architecture: one polyhedron per brush, owned by a single build call.
Dependencies: polyhedron (clipping), displacement (grid meshing)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

from brushwork.src.conversion.brush_types import BrushDefinition, BrushFace
from brushwork.src.conversion.errors import (
    BrushGeometryError,
    DisplacementCornerMismatchError,
    MalformedPlaneError,
    UnclosedBrushError,
)
from brushwork.src.conversion.geometry.displacement import (
    DEFAULT_CORNER_TOLERANCE,
    DisplacementMesh,
    tessellate_displacement,
)
from brushwork.src.conversion.plane_math import Vec3
from brushwork.src.conversion.polyhedron import Polyhedron, clip_polyhedron_to_plane
from brushwork.src.validation.core import ValidationResult
from brushwork.src.validation.rules import BRUSH_001, DISP_001

# Configure module logger
logger = logging.getLogger(__name__)

# Half-extent of the seed cube; larger than any coordinate in a legal map
MAX_MAP_EXTENT = 16384.0

BrushShape = Polyhedron[Optional[BrushFace]]


@dataclass
class BuiltBrush:
    """A brush turned into explicit geometry.

    Attributes:
        brush_id: Id of the source solid
        shape: Clipped polyhedron; every face payload is a BrushFace
        displacements: Triangle grids keyed by face index in ``shape.faces``
        hidden_faces: Face indices that must not be rendered (rejected
            displacements without flat fallback)
        entity_classname: Owning entity ("worldspawn" for world brushes)
    """
    brush_id: int
    shape: BrushShape
    displacements: Dict[int, DisplacementMesh] = field(default_factory=dict)
    hidden_faces: Set[int] = field(default_factory=set)
    entity_classname: str = "worldspawn"

    @property
    def has_displacement(self) -> bool:
        return bool(self.displacements)


def seed_cube(extent: float = MAX_MAP_EXTENT) -> BrushShape:
    """Axis-aligned cube spanning ``±extent`` with six untagged faces.

    Loops are wound counter-clockwise seen from outside.
    """
    e = float(extent)
    vertices: List[Vec3] = [
        (-e, -e, e),
        (-e, e, e),
        (-e, -e, -e),
        (-e, e, -e),
        (e, -e, e),
        (e, e, e),
        (e, -e, -e),
        (e, e, -e),
    ]
    faces = [
        (None, [0, 1, 3, 2]),  # -X
        (None, [2, 3, 7, 6]),  # -Z
        (None, [6, 7, 5, 4]),  # +X
        (None, [4, 5, 1, 0]),  # +Z
        (None, [2, 6, 4, 0]),  # -Y
        (None, [7, 3, 1, 5]),  # +Y
    ]
    return Polyhedron(vertices=vertices, faces=faces)


def box_faces(min_point: Vec3, max_point: Vec3, material: str = "dev/dev_measuregeneric01",
              first_face_id: int = 1) -> List[BrushFace]:
    """Six faces of an axis-aligned box brush, wound as in a VMF."""
    x1, y1, z1 = min_point
    x2, y2, z2 = max_point
    planes = [
        ((x1, y1, z1), (x1, y2, z1), (x1, y1, z2)),  # left (-X)
        ((x2, y1, z1), (x2, y1, z2), (x2, y2, z1)),  # right (+X)
        ((x1, y1, z1), (x1, y1, z2), (x2, y1, z1)),  # front (-Y)
        ((x1, y2, z1), (x2, y2, z1), (x1, y2, z2)),  # back (+Y)
        ((x1, y1, z1), (x2, y1, z1), (x1, y2, z1)),  # bottom (-Z)
        ((x1, y1, z2), (x1, y2, z2), (x2, y1, z2)),  # top (+Z)
    ]
    return [
        BrushFace(plane_points=points, material=material, face_id=first_face_id + i)
        for i, points in enumerate(planes)
    ]


def build_brush_polyhedron(faces: Sequence[BrushFace], max_extent: float = MAX_MAP_EXTENT,
                           brush_id: Optional[int] = None,
                           issues: Optional[ValidationResult] = None) -> BrushShape:
    """
    Clip the seed cube by every face plane, in order.

    A face with a degenerate plane is skipped (and reported through
    ``issues``); the remaining faces still have to close the brush.

    Args:
        faces: Brush faces in file order
        max_extent: Half-extent of the seed cube
        brush_id: Used in log messages and raised errors
        issues: Optional sink for non-fatal findings

    Returns:
        Polyhedron whose faces all carry a BrushFace

    Raises:
        UnclosedBrushError: If a seed face survives clipping
        ClipTopologyError: If a clip meets non-convex or degenerate geometry
    """
    poly = seed_cube(max_extent)
    for face in faces:
        try:
            plane = face.plane()
        except MalformedPlaneError as e:
            logger.warning("Brush %s: face %s rejected: %s", brush_id, face.face_id, e)
            if issues is not None:
                issues.add_issue(BRUSH_001.issue(
                    location=f"brush {brush_id} face {face.face_id}",
                    brush_id=brush_id,
                    face_id=face.face_id,
                    points=face.plane_points,
                ))
            continue
        try:
            clip_polyhedron_to_plane(poly, plane.point, plane.normal, face)
        except BrushGeometryError as e:
            e.brush_id = brush_id
            e.face_id = face.face_id
            raise

    untagged = poly.untagged_faces()
    if untagged:
        raise UnclosedBrushError(
            f"Brush {brush_id} is not closed: {len(untagged)} seed face(s) survived clipping",
            brush_id=brush_id,
        )
    return poly


def build_brush(definition: BrushDefinition, max_extent: float = MAX_MAP_EXTENT,
                corner_tolerance: float = DEFAULT_CORNER_TOLERANCE,
                flat_fallback: bool = True,
                issues: Optional[ValidationResult] = None) -> BuiltBrush:
    """
    Build the polyhedron of one brush and mesh its displacement faces.

    A displacement whose start position matches no quad corner is dropped:
    the face is then drawn flat when ``flat_fallback`` is set, and hidden
    otherwise.

    Raises:
        BrushGeometryError: If the brush itself can't be built
    """
    shape = build_brush_polyhedron(definition.faces, max_extent, definition.brush_id, issues)
    built = BuiltBrush(
        brush_id=definition.brush_id,
        shape=shape,
        entity_classname=definition.entity_classname,
    )

    for face_index, (face, _) in enumerate(shape.faces):
        if face.displacement is None:
            continue
        try:
            built.displacements[face_index] = tessellate_displacement(
                shape.face_points(face_index),
                face.displacement,
                face.plane().normal,
                face.u_axis,
                face.v_axis,
                corner_tolerance,
            )
        except DisplacementCornerMismatchError as e:
            e.brush_id = definition.brush_id
            e.face_id = face.face_id
            action = "drawn flat" if flat_fallback else "hidden"
            logger.warning("Brush %s: displacement on face %s rejected (%s), %s",
                           definition.brush_id, face.face_id, e, action)
            if issues is not None:
                issues.add_issue(DISP_001.issue(
                    location=f"brush {definition.brush_id} face {face.face_id}",
                    brush_id=definition.brush_id,
                    face_id=face.face_id,
                    details=str(e),
                ))
            if not flat_fallback:
                built.hidden_faces.add(face_index)

    return built


def brush_face_counts(brushes: Sequence[BuiltBrush]) -> Tuple[int, int]:
    """Total ``(flat faces, displacement faces)`` over built brushes."""
    flat = sum(len(b.shape.faces) - len(b.displacements) for b in brushes)
    displaced = sum(len(b.displacements) for b in brushes)
    return flat, displaced
