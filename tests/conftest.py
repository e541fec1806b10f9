"""Shared fixtures: small VMF documents assembled from text."""

import pytest

from brushwork.src.conversion.geometry.brush_builder import box_faces


def _vec(p):
    return " ".join(f"{float(c):g}" for c in p)


class VmfText:
    """Builds VMF source text for tests."""

    @staticmethod
    def side(face_id, points, material="DEV/DEV_MEASUREGENERIC01",
             uaxis="[1 0 0 0] 0.25", vaxis="[0 -1 0 0] 0.25", body=""):
        plane = " ".join(f"({_vec(p)})" for p in points)
        return (
            "side\n{\n"
            f'"id" "{face_id}"\n'
            f'"plane" "{plane}"\n'
            f'"material" "{material}"\n'
            f'"uaxis" "{uaxis}"\n'
            f'"vaxis" "{vaxis}"\n'
            '"lightmapscale" "16"\n'
            '"smoothing_groups" "0"\n'
            f"{body}"
            "}\n"
        )

    @staticmethod
    def grid(name, rows):
        lines = "".join(f'"row{i}" "{row}"\n' for i, row in enumerate(rows))
        return f"{name}\n{{\n{lines}}}\n"

    @classmethod
    def dispinfo(cls, start, power=2, normal=(0, 0, 1), distance=0, alpha=0,
                 elevation=0, sizes=None):
        """Flat ``dispinfo`` block; ``sizes`` overrides the row length of every grid."""
        size = (1 << power) + 1
        cells = sizes if sizes is not None else size
        normals = " ".join([_vec(normal)] * cells)
        distances = " ".join([str(distance)] * cells)
        offsets = " ".join(["0 0 0"] * cells)
        alphas = " ".join([str(alpha)] * cells)
        return (
            "dispinfo\n{\n"
            f'"power" "{power}"\n'
            f'"startposition" "[{_vec(start)}]"\n'
            f'"elevation" "{elevation}"\n'
            '"subdiv" "0"\n'
            + cls.grid("normals", [normals] * size)
            + cls.grid("distances", [distances] * size)
            + cls.grid("offsets", [offsets] * size)
            + cls.grid("alphas", [alphas] * size)
            + "}\n"
        )

    @classmethod
    def box(cls, solid_id, mins, maxs, material="DEV/DEV_MEASUREGENERIC01",
            first_side_id=None, top_body="", sides=None):
        """Axis-aligned box solid; ``top_body`` is appended inside the +Z side."""
        first = first_side_id if first_side_id is not None else solid_id * 10 + 1
        faces = box_faces(mins, maxs, first_face_id=first)
        keep = sides if sides is not None else range(6)
        # Index 5 is the +Z face
        text = "".join(
            cls.side(faces[i].face_id, faces[i].plane_points, material,
                     body=top_body if i == 5 else "")
            for i in keep
        )
        return f'solid\n{{\n"id" "{solid_id}"\n{text}}}\n'

    @staticmethod
    def document(world_solids="", entities="", version=1):
        return (
            f'versioninfo\n{{\n"editorversion" "400"\n"mapversion" "{version}"\n}}\n'
            f'world\n{{\n"id" "1"\n"classname" "worldspawn"\n{world_solids}}}\n'
            f"{entities}"
        )

    @staticmethod
    def entity(classname, solids, entity_id=100):
        return f'entity\n{{\n"id" "{entity_id}"\n"classname" "{classname}"\n{solids}}}\n'


@pytest.fixture
def vmf():
    return VmfText


@pytest.fixture
def write_vmf(tmp_path):
    def write(text, name="map.vmf"):
        path = tmp_path / name
        path.write_text(text)
        return path
    return write
