import logging

import pytest

from brushwork.src.conversion.uv_projection import UVAxis, project_uv

## Tests for texture axis parsing and projection


class TestUVAxisParse:
    """Reading ``[x y z translation] scale`` strings"""

    def test_parse(self):
        axis = UVAxis.parse("[1 0 0 16] 0.25")
        assert axis.direction == (1.0, 0.0, 0.0)
        assert axis.translation == 16.0
        assert axis.scale == 0.25

    def test_parse_extra_whitespace(self):
        axis = UVAxis.parse("  [ 0 -1  0 0 ]   0.5 ")
        assert axis.direction == (0.0, -1.0, 0.0)
        assert axis.scale == 0.5

    @pytest.mark.parametrize("text", [
        "",
        "[1 0 0] 0.25",
        "[1 0 0 0]",
        "1 0 0 0 0.25",
        "[a 0 0 0] 0.25",
    ])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            UVAxis.parse(text)

    def test_unnormalized_axis_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            axis = UVAxis.parse("[2 0 0 0] 0.25")
        assert not axis.is_normalized
        assert "isn't normalized" in caplog.text

    def test_nearly_unit_axis_is_accepted(self):
        assert UVAxis.parse("[1.02 0 0 0] 0.25").is_normalized


class TestProjectUV:
    """World position to texture coordinates"""

    def test_quad_corners(self):
        # 128 unit quad, one texture repeat across it
        u_axis = UVAxis((1.0, 0.0, 0.0), 0.0, 128.0)
        v_axis = UVAxis((0.0, -1.0, 0.0), 0.0, 128.0)
        corners = [(0.0, 0.0, 0.0), (128.0, 0.0, 0.0), (128.0, -128.0, 0.0), (0.0, -128.0, 0.0)]

        uvs = [project_uv(u_axis, v_axis, p) for p in corners]

        assert uvs == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]

    def test_translation_is_added_after_scaling(self):
        axis = UVAxis((1.0, 0.0, 0.0), 8.0, 0.5)
        assert axis.project((10.0, 0.0, 0.0)) == 28.0

    def test_non_unit_direction_is_compensated(self):
        axis = UVAxis((2.0, 0.0, 0.0), 0.0, 1.0)
        assert axis.project((10.0, 0.0, 0.0)) == pytest.approx(5.0)

    def test_zero_scale_is_treated_as_one(self):
        axis = UVAxis((1.0, 0.0, 0.0), 0.0, 0.0)
        assert axis.project((10.0, 0.0, 0.0)) == 10.0

    def test_zero_direction_gives_translation(self):
        axis = UVAxis((0.0, 0.0, 0.0), 3.0, 0.25)
        assert axis.project((10.0, 20.0, 30.0)) == 3.0
