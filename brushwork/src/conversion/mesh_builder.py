"""
Mesh builder for converting built brushes to renderable geometry.

Flat faces are fan-triangulated from their polyhedron loop; displacement
faces contribute their tessellated grid instead.  Output is a flat
vertex/index buffer pair ready for upload to a GPU or export.
"""

from __future__ import annotations

import logging
import numpy as np
from typing import Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass

from brushwork.src.conversion.geometry.brush_builder import BuiltBrush
from brushwork.src.conversion.geometry.displacement import DisplacementMesh
from brushwork.src.conversion.plane_math import Vec3
from brushwork.src.conversion.uv_projection import project_uv

logger = logging.getLogger(__name__)

# position (3) + normal (3) + uv (2) + alpha (1)
VERTEX_STRIDE = 9


@dataclass
class RenderMesh:
    """Renderable mesh data."""
    # Vertex data: position (3) + normal (3) + uv (2) + alpha (1) = 9 floats per vertex
    vertices: np.ndarray  # Shape: (N, 9), dtype=float32
    # Triangle indices
    indices: np.ndarray   # Shape: (M, 3), dtype=uint32
    # Bounding box
    bounds_min: Tuple[float, float, float]
    bounds_max: Tuple[float, float, float]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.indices)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0

    @property
    def positions(self) -> np.ndarray:
        return self.vertices[:, 0:3]

    @property
    def normals(self) -> np.ndarray:
        return self.vertices[:, 3:6]

    @property
    def uvs(self) -> np.ndarray:
        return self.vertices[:, 6:8]

    @property
    def alphas(self) -> np.ndarray:
        return self.vertices[:, 8]

    @classmethod
    def empty(cls) -> "RenderMesh":
        return cls(
            vertices=np.zeros((0, VERTEX_STRIDE), dtype=np.float32),
            indices=np.zeros((0, 3), dtype=np.uint32),
            bounds_min=(0.0, 0.0, 0.0),
            bounds_max=(0.0, 0.0, 0.0),
        )


class MeshBuilder:
    """Accumulates built brushes into one render mesh.

    Args:
        skip_tool_materials: Leave out faces whose material is under
            ``tools/`` (nodraw, clip, trigger, ...)
        material: Only take faces with this material (case-insensitive)
    """

    def __init__(self, skip_tool_materials: bool = True, material: Optional[str] = None):
        self.skip_tool_materials = skip_tool_materials
        self.material = material.lower() if material is not None else None
        self._vertices: List[List[float]] = []
        self._indices: List[List[int]] = []
        self._bounds_min: Optional[List[float]] = None
        self._bounds_max: Optional[List[float]] = None
        self.skipped_faces = 0

    def clear(self):
        """Clear all mesh data."""
        self._vertices.clear()
        self._indices.clear()
        self._bounds_min = None
        self._bounds_max = None
        self.skipped_faces = 0

    def add_brushes(self, brushes: Iterable[BuiltBrush]):
        """Convert brushes to mesh data and accumulate."""
        for brush in brushes:
            self.add_brush(brush)

    def add_brush(self, brush: BuiltBrush):
        """Triangulate every visible face of one brush."""
        for face_index, (face, loop) in enumerate(brush.shape.faces):
            if face is None or face_index in brush.hidden_faces:
                continue
            if self.skip_tool_materials and face.is_tool:
                self.skipped_faces += 1
                continue
            if self.material is not None and face.material.lower() != self.material:
                continue

            displacement = brush.displacements.get(face_index)
            if displacement is not None:
                self._add_displacement(displacement)
                continue

            if len(loop) < 3:
                continue
            normal = face.plane().normal
            points = brush.shape.face_points(face_index)

            # Triangulate the polygon (fan triangulation)
            first_idx = len(self._vertices)
            for v in points:
                self._update_bounds(v)
                uv = project_uv(face.u_axis, face.v_axis, v)
                self._vertices.append([
                    v[0], v[1], v[2],                 # Position (3)
                    normal[0], normal[1], normal[2],  # Normal (3)
                    uv[0], uv[1],                     # UV (2)
                    1.0,                              # Alpha (1)
                ])

            for i in range(1, len(points) - 1):
                self._indices.append([first_idx, first_idx + i, first_idx + i + 1])

    def _add_displacement(self, mesh: DisplacementMesh):
        first_idx = len(self._vertices)
        for position, normal, uv, alpha in zip(mesh.positions, mesh.normals, mesh.uvs, mesh.alphas):
            self._update_bounds(position)
            self._vertices.append([
                float(position[0]), float(position[1]), float(position[2]),
                float(normal[0]), float(normal[1]), float(normal[2]),
                float(uv[0]), float(uv[1]),
                float(alpha),
            ])
        for a, b, c in mesh.indices:
            self._indices.append([first_idx + int(a), first_idx + int(b), first_idx + int(c)])

    def _update_bounds(self, v: Vec3):
        """Update bounding box with new vertex."""
        if self._bounds_min is None:
            self._bounds_min = [float(v[0]), float(v[1]), float(v[2])]
            self._bounds_max = [float(v[0]), float(v[1]), float(v[2])]
        else:
            for axis in range(3):
                self._bounds_min[axis] = min(self._bounds_min[axis], float(v[axis]))
                self._bounds_max[axis] = max(self._bounds_max[axis], float(v[axis]))

    def build(self) -> RenderMesh:
        """Build the final renderable mesh."""
        if not self._vertices:
            return RenderMesh.empty()

        vertices = np.array(self._vertices, dtype=np.float32)
        indices = np.array(self._indices, dtype=np.uint32).reshape(-1, 3)

        logger.debug("Built render mesh: %d vertices, %d triangles",
                     len(vertices), len(indices))
        return RenderMesh(
            vertices=vertices,
            indices=indices,
            bounds_min=tuple(self._bounds_min),
            bounds_max=tuple(self._bounds_max),
        )


def build_mesh_from_brushes(brushes: Iterable[BuiltBrush],
                            skip_tool_materials: bool = True) -> RenderMesh:
    """Convenience function to build mesh from brushes in one call."""
    builder = MeshBuilder(skip_tool_materials=skip_tool_materials)
    builder.add_brushes(brushes)
    return builder.build()


def build_material_meshes(brushes: Iterable[BuiltBrush],
                          skip_tool_materials: bool = True) -> Dict[str, RenderMesh]:
    """Build one mesh per material, for per-material texturing or export.

    Keys are the material names as first written in the map; names that
    differ only in case share a mesh.
    """
    brushes = list(brushes)
    materials: Dict[str, str] = {}
    for brush in brushes:
        for face, _ in brush.shape.faces:
            if face is None or (skip_tool_materials and face.is_tool):
                continue
            materials.setdefault(face.material.lower(), face.material)

    meshes: Dict[str, RenderMesh] = {}
    for material in materials.values():
        builder = MeshBuilder(skip_tool_materials=skip_tool_materials, material=material)
        builder.add_brushes(brushes)
        mesh = builder.build()
        if not mesh.is_empty:
            meshes[material] = mesh
    return meshes
