"""
Wavefront OBJ export for built brush geometry.

Takes the render meshes produced by the mesh builder (one per material) and
writes them as .obj (and optional .mtl).  Map space is Z-up; OBJ is Y-up.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from brushwork.src.conversion.geometry.brush_builder import BuiltBrush
from brushwork.src.conversion.mesh_builder import RenderMesh, build_material_meshes

logger = logging.getLogger(__name__)


def _to_obj_axes(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """Map Z-up coordinates to OBJ Y-up (same handedness)."""
    return (x, z, -y)


class ObjWriter:
    """Write render meshes as Wavefront OBJ + optional MTL.

    Each added mesh becomes one ``usemtl`` group.  Positions, texture
    coordinates and normals are written per vertex, so face corners use the
    ``f v/vt/vn`` form with one shared index.
    """

    def __init__(self):
        self._meshes: List[Tuple[RenderMesh, str]] = []

    def add_mesh(self, mesh: RenderMesh, material: str):
        if mesh.is_empty:
            return
        self._meshes.append((mesh, material))

    def add_brushes(self, brushes: Iterable[BuiltBrush], skip_tool_materials: bool = True):
        """Add built brushes, grouped by material."""
        for material, mesh in build_material_meshes(brushes, skip_tool_materials).items():
            self.add_mesh(mesh, material)

    def write(self, obj_path: Union[str, Path], write_mtl: bool = True):
        """Write .obj (and optionally .mtl) files."""
        obj_p = Path(obj_path)
        mtl_name = obj_p.stem + ".mtl"

        lines = []
        lines.append("# brushwork OBJ export")
        lines.append(f"# {self.vertex_count} vertices, {self.face_count} faces")
        if write_mtl:
            lines.append(f"mtllib {mtl_name}")
        lines.append("")

        offset = 1  # OBJ indices are 1-based
        for mesh, material in self._meshes:
            lines.append(f"o {material}")
            for x, y, z in mesh.positions:
                px, py, pz = _to_obj_axes(float(x), float(y), float(z))
                lines.append(f"v {px:.4f} {py:.4f} {pz:.4f}")
            # Map textures have V pointing down
            for u, v in mesh.uvs:
                lines.append(f"vt {float(u):.4f} {1.0 - float(v):.4f}")
            for x, y, z in mesh.normals:
                nx, ny, nz = _to_obj_axes(float(x), float(y), float(z))
                lines.append(f"vn {nx:.4f} {ny:.4f} {nz:.4f}")

            lines.append(f"usemtl {material}")
            for tri in mesh.indices:
                corners = " ".join(f"{int(i) + offset}/{int(i) + offset}/{int(i) + offset}" for i in tri)
                lines.append(f"f {corners}")
            lines.append("")
            offset += mesh.vertex_count

        obj_p.write_text("\n".join(lines) + "\n")
        logger.info("Wrote %s (%d vertices, %d faces)", obj_p, self.vertex_count, self.face_count)

        if write_mtl:
            self._write_mtl(obj_p.parent / mtl_name)

    def _write_mtl(self, mtl_path: Path):
        lines = ["# brushwork MTL", ""]
        for mat in sorted({material for _, material in self._meshes}):
            lines.append(f"newmtl {mat}")
            lines.append("Ka 0.2 0.2 0.2")
            lines.append("Kd 0.8 0.8 0.8")
            lines.append("Ks 0.0 0.0 0.0")
            lines.append("d 1.0")
            lines.append(f"map_Kd {mat}.png")
            lines.append("")
        mtl_path.write_text("\n".join(lines) + "\n")

    @property
    def vertex_count(self) -> int:
        return sum(mesh.vertex_count for mesh, _ in self._meshes)

    @property
    def face_count(self) -> int:
        return sum(mesh.triangle_count for mesh, _ in self._meshes)
