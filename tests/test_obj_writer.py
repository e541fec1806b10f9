import pytest

from brushwork.src.conversion.brush_types import BrushDefinition
from brushwork.src.conversion.geometry.brush_builder import box_faces, build_brush
from brushwork.src.conversion.mesh_builder import RenderMesh
from brushwork.src.conversion.obj_writer import ObjWriter

## Tests for Wavefront OBJ export


def lines_starting(text, prefix):
    return [line for line in text.splitlines() if line.startswith(prefix + " ")]


def floats(line):
    return [float(x) for x in line.split()[1:]]


def two_material_brush():
    faces = box_faces((0, 0, 0), (64, 32, 16), material="brick/wall01")
    faces[5].material = "nature/grass01"
    return build_brush(BrushDefinition(brush_id=1, faces=faces))


class TestObjWriter:
    """Writing .obj and .mtl files"""

    def test_counts(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])
        obj_path = tmp_path / "out.obj"

        writer.write(obj_path)

        text = obj_path.read_text()
        assert len(lines_starting(text, "v")) == 24
        assert len(lines_starting(text, "vt")) == 24
        assert len(lines_starting(text, "vn")) == 24
        assert len(lines_starting(text, "f")) == 12
        assert writer.vertex_count == 24
        assert writer.face_count == 12

    def test_groups_and_mtllib(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])
        obj_path = tmp_path / "level.obj"

        writer.write(obj_path)

        text = obj_path.read_text()
        assert "mtllib level.mtl" in text.splitlines()
        assert lines_starting(text, "usemtl") == ["usemtl brick/wall01", "usemtl nature/grass01"]
        assert lines_starting(text, "o") == ["o brick/wall01", "o nature/grass01"]

    def test_face_indices_are_one_based_and_offset(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])
        obj_path = tmp_path / "out.obj"

        writer.write(obj_path)

        indices = []
        for line in lines_starting(obj_path.read_text(), "f"):
            for corner in line.split()[1:]:
                v, vt, vn = corner.split("/")
                assert v == vt == vn
                indices.append(int(v))
        assert min(indices) == 1
        assert max(indices) == 24
        # The second group (one quad) only references its own vertices
        assert all(i > 20 for i in indices[-6:])

    def test_axes_are_converted_to_y_up(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])
        obj_path = tmp_path / "out.obj"

        writer.write(obj_path)

        positions = [floats(line) for line in lines_starting(obj_path.read_text(), "v")]
        xs, ys, zs = zip(*positions)
        assert (min(xs), max(xs)) == pytest.approx((0.0, 64.0))
        assert (min(ys), max(ys)) == pytest.approx((0.0, 16.0))
        assert (min(zs), max(zs)) == pytest.approx((-32.0, 0.0))

        normals = [tuple(floats(line)) for line in lines_starting(obj_path.read_text(), "vn")]
        # Map +Z (the grass top) becomes OBJ +Y
        assert normals[-1] == pytest.approx((0.0, 1.0, 0.0))

    def test_v_is_flipped(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])
        obj_path = tmp_path / "out.obj"

        writer.write(obj_path)

        text = obj_path.read_text()
        positions = [floats(line) for line in lines_starting(text, "v")]
        uvs = [floats(line) for line in lines_starting(text, "vt")]
        for (x, _, z), (u, v) in zip(positions, uvs):
            # map y = -z; default v axis is -y / 0.25
            assert u == pytest.approx(x / 0.25, abs=1e-3)
            assert v == pytest.approx(1.0 - z / 0.25, abs=1e-3)

    def test_mtl(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])

        writer.write(tmp_path / "out.obj")

        mtl = (tmp_path / "out.mtl").read_text()
        assert lines_starting(mtl, "newmtl") == ["newmtl brick/wall01", "newmtl nature/grass01"]
        assert "map_Kd nature/grass01.png" in mtl.splitlines()

    def test_without_mtl(self, tmp_path):
        writer = ObjWriter()
        writer.add_brushes([two_material_brush()])

        writer.write(tmp_path / "out.obj", write_mtl=False)

        assert not (tmp_path / "out.mtl").exists()
        assert "mtllib" not in (tmp_path / "out.obj").read_text()

    def test_empty_meshes_are_ignored(self, tmp_path):
        writer = ObjWriter()
        writer.add_mesh(RenderMesh.empty(), "nothing")

        writer.write(tmp_path / "out.obj")

        assert writer.face_count == 0
        assert lines_starting((tmp_path / "out.obj").read_text(), "o") == []
