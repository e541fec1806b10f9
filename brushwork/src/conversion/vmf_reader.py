"""
VMF map reader.

Turns the KeyValues tree of a Hammer ``.vmf`` file into BrushDefinitions.

Layout of the parts that are read::

    versioninfo { mapversion }
    world  { solid { id, side { id, plane, material, uaxis, vaxis,
                                lightmapscale, smoothing_groups,
                                dispinfo { power, startposition, elevation, subdiv,
                                           normals, distances, offsets, alphas } } } }
    entity { classname, solid { ... } }

Each solid is parsed on its own.  A broken solid is logged and skipped
(recorded in ``VmfMap.skipped``) unless ``strict`` is set.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging
import re

from brushwork.src.conversion.brush_types import BrushDefinition, BrushFace
from brushwork.src.conversion.errors import (
    InconsistentGridSizeError,
    MalformedPlaneError,
    VmfParseError,
)
from brushwork.src.conversion.geometry.displacement import (
    DisplacementInfo,
    repair_displacement_normals,
)
from brushwork.src.conversion.keyvalues import KeyValues, load_keyvalues
from brushwork.src.conversion.plane_math import BrushPlane, Vec3
from brushwork.src.conversion.uv_projection import UVAxis
from brushwork.src.validation.core import ValidationResult, ValidationStage
from brushwork.src.validation.rules import DISP_002, UV_001, VMF_001

# Configure module logger
logger = logging.getLogger(__name__)

_PAREN_VECTOR = r"\(\s*(\S+)\s+(\S+)\s+(\S+)\s*\)"
_PLANE_PATTERN = re.compile(rf"^\s*{_PAREN_VECTOR}\s*{_PAREN_VECTOR}\s*{_PAREN_VECTOR}\s*$")
_BRACKET_VECTOR = re.compile(r"^\s*\[\s*(\S+)\s+(\S+)\s+(\S+)\s*\]\s*$")


@dataclass
class VmfMap:
    """Brushes read from one VMF file.

    Attributes:
        world_brushes: Solids of the ``world`` block
        entity_brushes: Solids owned by brush entities (func_detail, ...)
        skipped: ``(solid id, reason)`` for solids that failed to parse
        map_version: ``versioninfo.mapversion`` (0 when absent)
        issues: Findings recorded while parsing
    """
    world_brushes: List[BrushDefinition] = field(default_factory=list)
    entity_brushes: List[BrushDefinition] = field(default_factory=list)
    skipped: List[Tuple[Optional[int], str]] = field(default_factory=list)
    map_version: int = 0
    issues: ValidationResult = field(
        default_factory=lambda: ValidationResult(stage=ValidationStage.PARSE)
    )

    def all_brushes(self, include_entities: bool = True) -> List[BrushDefinition]:
        if include_entities:
            return self.world_brushes + self.entity_brushes
        return list(self.world_brushes)

    @property
    def brush_count(self) -> int:
        return len(self.world_brushes) + len(self.entity_brushes)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def _require(kv: KeyValues, key: str) -> str:
    value = kv.get_value(key)
    if value is None:
        raise VmfParseError(f'missing key "{key}"')
    return value


def _to_float(text: str, what: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise VmfParseError(f"invalid number {text!r} in {what}") from None


def _to_int(text: str, what: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise VmfParseError(f"invalid integer {text!r} in {what}") from None


def parse_plane_points(text: str) -> Tuple[Vec3, Vec3, Vec3]:
    """Parse ``"(x y z) (x y z) (x y z)"``."""
    match = _PLANE_PATTERN.match(text)
    if match is None:
        raise VmfParseError(f"invalid plane {text!r}")
    values = [_to_float(g, "plane") for g in match.groups()]
    return (
        (values[0], values[1], values[2]),
        (values[3], values[4], values[5]),
        (values[6], values[7], values[8]),
    )


def parse_bracket_vector(text: str) -> Vec3:
    """Parse ``"[x y z]"``."""
    match = _BRACKET_VECTOR.match(text)
    if match is None:
        raise VmfParseError(f"invalid vector {text!r}")
    x, y, z = (_to_float(g, "vector") for g in match.groups())
    return (x, y, z)


# ---------------------------------------------------------------------------
# Displacements
# ---------------------------------------------------------------------------

def _grid_rows(block: KeyValues, name: str, size: int, components: int) -> List[List[float]]:
    """Read ``row0 .. row{size-1}`` of a dispinfo grid as flat float rows."""
    rows = []
    for row in range(size):
        text = block.get_value(f"row{row}")
        if text is None:
            raise InconsistentGridSizeError(f"{name} has no row{row} (expected {size} rows)")
        values = [_to_float(v, f"{name} row{row}") for v in text.split()]
        if len(values) != size * components:
            raise InconsistentGridSizeError(
                f"{name} row{row} has {len(values)} values, expected {size * components}"
            )
        rows.append(values)
    return rows


def _vector_grid(block: KeyValues, name: str, size: int) -> List[List[Vec3]]:
    return [
        [(row[i], row[i + 1], row[i + 2]) for i in range(0, len(row), 3)]
        for row in _grid_rows(block, name, size, 3)
    ]


def _require_block(kv: KeyValues, key: str) -> KeyValues:
    block = kv.get_block(key)
    if block is None:
        raise VmfParseError(f'missing block "{key}"')
    return block


def parse_dispinfo(kv: KeyValues, face_normal: Optional[Vec3] = None) -> DisplacementInfo:
    """Parse a ``dispinfo`` block.

    When ``face_normal`` is given the normal/distance repair pass is applied
    right away.

    Raises:
        InconsistentGridSizeError: If a grid doesn't match the power
        VmfParseError: On any other missing or invalid key
    """
    power = _to_int(_require(kv, "power"), "power")
    start_position = parse_bracket_vector(_require(kv, "startposition"))
    elevation = _to_float(kv.get_value("elevation", "0"), "elevation")
    subdivide = kv.get_value("subdiv", "0") != "0"

    size = (1 << power) + 1 if 0 <= power < 16 else 0
    normals = _vector_grid(_require_block(kv, "normals"), "normals", size)
    distances = _grid_rows(_require_block(kv, "distances"), "distances", size, 1)
    offsets_block = kv.get_block("offsets")
    if offsets_block is None:
        offsets = [[(0.0, 0.0, 0.0)] * size for _ in range(size)]
    else:
        offsets = _vector_grid(offsets_block, "offsets", size)
    # Hammer sometimes writes alphas as decimals; stored values saturate to 0..255
    alphas = [
        [min(max(int(value), 0), 255) for value in row]
        for row in _grid_rows(_require_block(kv, "alphas"), "alphas", size, 1)
    ]

    try:
        info = DisplacementInfo(
            power=power,
            start_position=start_position,
            elevation=elevation,
            subdivide=subdivide,
            normals=normals,
            distances=distances,
            offsets=offsets,
            alphas=alphas,
        )
    except ValueError as e:
        raise VmfParseError(str(e)) from None

    if face_normal is not None:
        info = repair_displacement_normals(info, face_normal)
    return info


# ---------------------------------------------------------------------------
# Sides and solids
# ---------------------------------------------------------------------------

def _parse_axis(kv: KeyValues, key: str, issues: Optional[ValidationResult],
                brush_id: Optional[int], face_id: int) -> UVAxis:
    text = _require(kv, key)
    try:
        axis = UVAxis.parse(text)
    except ValueError as e:
        raise VmfParseError(str(e)) from None
    if not axis.is_normalized and issues is not None:
        issues.add_issue(UV_001.issue(
            location=f"brush {brush_id} face {face_id} {key}",
            brush_id=brush_id,
            face_id=face_id,
            axis=text.strip(),
        ))
    return axis


def parse_side(kv: KeyValues, brush_id: Optional[int] = None,
               issues: Optional[ValidationResult] = None) -> BrushFace:
    """Parse one ``side`` block into a BrushFace.

    Raises:
        VmfParseError: On a missing or invalid key
    """
    face_id = _to_int(_require(kv, "id"), "side id")
    plane_points = parse_plane_points(_require(kv, "plane"))
    face = BrushFace(
        plane_points=plane_points,
        material=_require(kv, "material"),
        u_axis=_parse_axis(kv, "uaxis", issues, brush_id, face_id),
        v_axis=_parse_axis(kv, "vaxis", issues, brush_id, face_id),
        face_id=face_id,
        lightmap_scale=_to_int(kv.get_value("lightmapscale", "16"), "lightmapscale"),
        smoothing_groups=_to_int(kv.get_value("smoothing_groups", "0"), "smoothing_groups"),
    )

    dispinfo = kv.get_block("dispinfo")
    if dispinfo is not None:
        try:
            face_normal: Optional[Vec3] = BrushPlane.from_three_points(*plane_points).normal
        except MalformedPlaneError:
            # The brush builder rejects this face; leave the normals as stored
            face_normal = None
        face.displacement = parse_dispinfo(dispinfo, face_normal)
    return face


def parse_solid(kv: KeyValues, entity_classname: str = "worldspawn",
                issues: Optional[ValidationResult] = None) -> BrushDefinition:
    """Parse one ``solid`` block.

    Raises:
        VmfParseError: On a missing or invalid key in the solid or any side
    """
    brush_id = _to_int(_require(kv, "id"), "solid id")
    try:
        faces = [parse_side(side, brush_id, issues) for side in kv.get_blocks("side")]
    except VmfParseError as e:
        e.solid_id = brush_id
        raise
    return BrushDefinition(brush_id=brush_id, faces=faces, entity_classname=entity_classname)


def _solid_id(kv: KeyValues) -> Optional[int]:
    try:
        return int(kv.get_value("id", ""))
    except ValueError:
        return None


def _read_solids(blocks: List[KeyValues], classname: str, vmf_map: VmfMap,
                 strict: bool) -> List[BrushDefinition]:
    brushes = []
    for block in blocks:
        try:
            brushes.append(parse_solid(block, classname, vmf_map.issues))
        except VmfParseError as e:
            if strict:
                raise
            solid_id = e.solid_id if e.solid_id is not None else _solid_id(block)
            logger.warning("Skipping solid %s (%s): %s", solid_id, classname, e)
            vmf_map.skipped.append((solid_id, str(e)))
            rule = DISP_002 if isinstance(e, InconsistentGridSizeError) else VMF_001
            vmf_map.issues.add_issue(rule.issue(
                location=f"solid {solid_id}",
                brush_id=solid_id,
                details=str(e),
            ))
    return brushes


def parse_vmf(kv: KeyValues, strict: bool = False) -> VmfMap:
    """Collect the brushes of a parsed VMF.

    Args:
        kv: Root block of the file
        strict: Propagate the first solid error instead of skipping the solid

    Raises:
        VmfParseError: If there is no ``world`` block, or on a broken solid
            when ``strict`` is set
    """
    vmf_map = VmfMap()

    versioninfo = kv.get_block("versioninfo")
    if versioninfo is not None:
        vmf_map.map_version = _to_int(versioninfo.get_value("mapversion", "0"), "mapversion")

    world = kv.get_block("world")
    if world is None:
        raise VmfParseError('missing block "world"')
    vmf_map.world_brushes = _read_solids(world.get_blocks("solid"), "worldspawn", vmf_map, strict)

    for entity in kv.get_blocks("entity"):
        classname = entity.get_value("classname", "")
        solids = entity.get_blocks("solid")
        if solids:
            vmf_map.entity_brushes.extend(_read_solids(solids, classname, vmf_map, strict))

    logger.info("Read %d world and %d entity brushes (%d skipped, map version %d)",
                len(vmf_map.world_brushes), len(vmf_map.entity_brushes),
                len(vmf_map.skipped), vmf_map.map_version)
    return vmf_map


def load_vmf(path: Union[str, Path], strict: bool = False) -> VmfMap:
    """Read a ``.vmf`` file from disk.

    Raises:
        KeyValuesError: If the file can't be read or is not valid KeyValues
        VmfParseError: See :func:`parse_vmf`
    """
    vmf_map = parse_vmf(load_keyvalues(path), strict=strict)
    vmf_map.issues.set_file_path(str(path))
    return vmf_map
