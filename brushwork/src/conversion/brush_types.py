"""
Typed brush definitions shared by the VMF reader and the brush builder.

In the VMF a brush is a ``solid`` block and each of its faces a ``side``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .geometry.displacement import DisplacementInfo
from .plane_math import BrushPlane, Vec3
from .uv_projection import UVAxis


@dataclass
class BrushFace:
    """
    One bounding face of a brush.

    The three plane points are wound so that ``(p2 - p0) x (p1 - p0)`` is the
    outward normal.  The face doubles as the payload of the polyhedron face
    it produces.
    """
    plane_points: Tuple[Vec3, Vec3, Vec3]
    material: str = "tools/toolsnodraw"
    u_axis: UVAxis = field(default_factory=lambda: UVAxis((1.0, 0.0, 0.0)))
    v_axis: UVAxis = field(default_factory=lambda: UVAxis((0.0, -1.0, 0.0)))
    face_id: int = 0
    lightmap_scale: int = 16
    smoothing_groups: int = 0
    displacement: Optional[DisplacementInfo] = None

    def plane(self) -> BrushPlane:
        """Outward plane of this face.

        Raises:
            MalformedPlaneError: If the plane points are degenerate.
        """
        return BrushPlane.from_three_points(*self.plane_points)

    @property
    def is_tool(self) -> bool:
        """Editor-only materials (nodraw, clip, trigger, ...)."""
        return self.material.lower().startswith("tools/")


@dataclass
class BrushDefinition:
    """
    A brush as read from the map: an id and its faces in file order.

    ``entity_classname`` is ``"worldspawn"`` for world brushes and the owning
    entity's classname (``func_detail``, ...) otherwise.
    """
    brush_id: int
    faces: List[BrushFace] = field(default_factory=list)
    entity_classname: str = "worldspawn"

    @property
    def has_displacement(self) -> bool:
        return any(face.displacement is not None for face in self.faces)
