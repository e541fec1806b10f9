import pytest

from brushwork.src.conversion.errors import InconsistentGridSizeError, VmfParseError
from brushwork.src.conversion.keyvalues import parse_keyvalues
from brushwork.src.conversion.vmf_reader import (
    load_vmf,
    parse_bracket_vector,
    parse_dispinfo,
    parse_plane_points,
    parse_side,
    parse_vmf,
)
from brushwork.src.validation.core import ValidationResult

## Tests for reading brushes out of VMF text


def read(text, strict=False):
    return parse_vmf(parse_keyvalues(text), strict=strict)


def side_kv(body):
    return parse_keyvalues(body).get_block("side")


class TestScalars:
    """Plane and vector strings"""

    def test_plane_points(self):
        assert parse_plane_points("(0 0 16) (0 64 16) (64 0 16.5)") == (
            (0.0, 0.0, 16.0), (0.0, 64.0, 16.0), (64.0, 0.0, 16.5),
        )

    @pytest.mark.parametrize("text", ["(0 0 0) (1 1 1)", "0 0 0 1 1 1 2 2 2", "(0 0 x) (0 0 0) (0 0 0)"])
    def test_bad_plane(self, text):
        with pytest.raises(VmfParseError):
            parse_plane_points(text)

    def test_bracket_vector(self):
        assert parse_bracket_vector("[-8 0 32]") == (-8.0, 0.0, 32.0)

    def test_bad_bracket_vector(self):
        with pytest.raises(VmfParseError):
            parse_bracket_vector("(-8 0 32)")


class TestParseSide:
    """One ``side`` block"""

    def test_full_side(self, vmf):
        kv = side_kv(vmf.side(7, ((0, 0, 16), (0, 64, 16), (64, 0, 16)), material="BRICK/WALL01"))

        face = parse_side(kv, brush_id=3)

        assert face.face_id == 7
        assert face.material == "BRICK/WALL01"
        assert face.plane().normal == (0.0, 0.0, 1.0)
        assert face.u_axis.direction == (1.0, 0.0, 0.0)
        assert face.v_axis.scale == 0.25
        assert face.displacement is None

    def test_optional_keys_default(self):
        kv = side_kv(
            'side { "id" "1" "plane" "(0 0 0) (0 1 0) (1 0 0)" "material" "A" '
            '"uaxis" "[1 0 0 0] 0.25" "vaxis" "[0 -1 0 0] 0.25" }'
        )

        face = parse_side(kv)

        assert face.lightmap_scale == 16
        assert face.smoothing_groups == 0

    def test_missing_material(self):
        kv = side_kv('side { "id" "1" "plane" "(0 0 0) (0 1 0) (1 0 0)" }')
        with pytest.raises(VmfParseError, match="material"):
            parse_side(kv)

    def test_unnormalized_axis_is_reported(self, vmf):
        kv = side_kv(vmf.side(2, ((0, 0, 0), (0, 1, 0), (1, 0, 0)), uaxis="[3 0 0 0] 0.25"))
        issues = ValidationResult()

        parse_side(kv, brush_id=9, issues=issues)

        assert issues.codes() == ["UV-001"]
        assert issues.issues[0].brush_id == 9
        assert issues.passed


class TestParseDispinfo:
    """``dispinfo`` blocks"""

    def test_flat_dispinfo(self, vmf):
        kv = parse_keyvalues(vmf.dispinfo((0, 0, 16), elevation=2)).get_block("dispinfo")

        info = parse_dispinfo(kv)

        assert info.power == 2
        assert info.start_position == (0.0, 0.0, 16.0)
        assert info.elevation == 2.0
        assert not info.subdivide
        assert len(info.normals) == 5
        assert info.normals[4][4] == (0.0, 0.0, 1.0)
        assert not info.normals_repaired

    def test_normals_repaired_with_face_normal(self, vmf):
        kv = parse_keyvalues(vmf.dispinfo((0, 0, 16), normal=(0, 0, -1), distance=4)).get_block("dispinfo")

        info = parse_dispinfo(kv, face_normal=(0.0, 0.0, 1.0))

        assert info.normals_repaired
        assert info.normals[0][0] == pytest.approx((0.0, 0.0, 1.0))
        assert info.distances[0][0] == -4.0

    def test_decimal_alphas(self, vmf):
        kv = parse_keyvalues(vmf.dispinfo((0, 0, 16), alpha="255.0")).get_block("dispinfo")
        assert parse_dispinfo(kv).alphas[2][2] == 255

    def test_alphas_saturate(self, vmf):
        high = parse_keyvalues(vmf.dispinfo((0, 0, 16), alpha=300)).get_block("dispinfo")
        low = parse_keyvalues(vmf.dispinfo((0, 0, 16), alpha=-5)).get_block("dispinfo")

        assert parse_dispinfo(high).alphas[0][0] == 255
        assert parse_dispinfo(low).alphas[4][4] == 0

    def test_offsets_are_optional(self):
        def rows(name, value):
            row = " ".join([value] * 5)
            return f"{name} {{ " + " ".join(f'"row{i}" "{row}"' for i in range(5)) + " } "

        kv = parse_keyvalues(
            'dispinfo { "power" "2" "startposition" "[0 0 0]" '
            + rows("normals", "0 0 1") + rows("distances", "0") + rows("alphas", "0") + "}"
        ).get_block("dispinfo")

        info = parse_dispinfo(kv)

        assert info.offsets[3][3] == (0.0, 0.0, 0.0)
        assert info.elevation == 0.0

    def test_short_rows(self, vmf):
        kv = parse_keyvalues(vmf.dispinfo((0, 0, 16), sizes=4)).get_block("dispinfo")
        with pytest.raises(InconsistentGridSizeError, match="row0"):
            parse_dispinfo(kv)

    def test_too_few_rows(self, vmf):
        # Power 3 needs 9 rows; a power 2 grid only has 5
        text = vmf.dispinfo((0, 0, 16)).replace('"power" "2"', '"power" "3"')
        kv = parse_keyvalues(text).get_block("dispinfo")
        with pytest.raises(InconsistentGridSizeError):
            parse_dispinfo(kv)

    def test_missing_grid(self):
        kv = parse_keyvalues('dispinfo { "power" "2" "startposition" "[0 0 0]" }').get_block("dispinfo")
        with pytest.raises(VmfParseError, match="normals"):
            parse_dispinfo(kv)


class TestParseVmf:
    """Whole documents"""

    def test_single_box(self, vmf):
        vmf_map = read(vmf.document(vmf.box(2, (0, 0, 0), (64, 64, 64)), version=12))

        assert vmf_map.map_version == 12
        assert vmf_map.brush_count == 1
        brush, = vmf_map.world_brushes
        assert brush.brush_id == 2
        assert brush.entity_classname == "worldspawn"
        assert [f.face_id for f in brush.faces] == [21, 22, 23, 24, 25, 26]
        assert vmf_map.skipped == []
        assert vmf_map.issues.issues == []

    def test_entity_brushes(self, vmf):
        text = vmf.document(
            vmf.box(2, (0, 0, 0), (64, 64, 64)),
            entities=vmf.entity("func_detail", vmf.box(3, (0, 0, 64), (32, 32, 96)))
            + vmf.entity("info_player_start", ""),
        )

        vmf_map = read(text)

        detail, = vmf_map.entity_brushes
        assert detail.entity_classname == "func_detail"
        assert [b.brush_id for b in vmf_map.all_brushes()] == [2, 3]
        assert [b.brush_id for b in vmf_map.all_brushes(include_entities=False)] == [2]

    def test_displacement_side(self, vmf):
        solid = vmf.box(4, (0, 0, 0), (64, 64, 16), top_body=vmf.dispinfo((0, 0, 16)))

        brush, = read(vmf.document(solid)).world_brushes

        assert brush.has_displacement
        top = brush.faces[5]
        assert top.displacement.normals_repaired
        assert top.displacement.size == 5

    def test_broken_solid_is_skipped(self, vmf):
        broken = 'solid { "id" "5" side { "id" "51" "plane" "(0 0 0)" } }\n'
        text = vmf.document(vmf.box(2, (0, 0, 0), (64, 64, 64)) + broken)

        vmf_map = read(text)

        assert [b.brush_id for b in vmf_map.world_brushes] == [2]
        assert [solid_id for solid_id, _ in vmf_map.skipped] == [5]
        assert vmf_map.issues.codes() == ["VMF-001"]
        assert vmf_map.issues.issues[0].brush_id == 5
        assert vmf_map.issues.failed

    def test_bad_grid_is_skipped(self, vmf):
        solid = vmf.box(4, (0, 0, 0), (64, 64, 16), top_body=vmf.dispinfo((0, 0, 16), sizes=3))

        vmf_map = read(vmf.document(solid + vmf.box(6, (100, 0, 0), (164, 64, 64))))

        assert [b.brush_id for b in vmf_map.world_brushes] == [6]
        assert vmf_map.issues.codes() == ["DISP-002"]

    def test_strict_propagates(self, vmf):
        solid = vmf.box(4, (0, 0, 0), (64, 64, 16), top_body=vmf.dispinfo((0, 0, 16), sizes=3))

        with pytest.raises(InconsistentGridSizeError) as info:
            read(vmf.document(solid), strict=True)
        assert info.value.solid_id == 4

    def test_solid_without_id(self, vmf):
        vmf_map = read(vmf.document('solid { side { "id" "1" } }\n'))
        assert vmf_map.skipped[0][0] is None

    def test_missing_world(self):
        with pytest.raises(VmfParseError, match="world"):
            read('versioninfo { "mapversion" "1" }')

    def test_missing_versioninfo(self, vmf):
        vmf_map = read('world { "id" "1" }')
        assert vmf_map.map_version == 0


class TestLoadVmf:
    """Reading from disk"""

    def test_issues_carry_file_path(self, vmf, write_vmf):
        path = write_vmf(vmf.document('solid { "id" "8" }\n' + vmf.box(
            2, (0, 0, 0), (64, 64, 64)).replace("[1 0 0 0]", "[2 0 0 0]", 1)))

        vmf_map = load_vmf(path)

        assert vmf_map.brush_count == 2
        assert vmf_map.issues.codes() == ["UV-001"]
        assert vmf_map.issues.issues[0].file_path == str(path)
