"""
Map pipeline: VMF file -> built brushes -> render mesh (-> OBJ).

Every brush is built on its own.  A brush that fails to build is logged,
recorded as a validation issue and left out; the rest of the map still
loads.  ``fail_fast`` turns any FAIL issue into a ValidationError instead.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from brushwork.src.conversion.errors import (
    BrushGeometryError,
    ClipTopologyError,
    DisplacementCornerMismatchError,
    MalformedPlaneError,
    UnclosedBrushError,
    VmfParseError,
)
from brushwork.src.conversion.geometry import brush_builder
from brushwork.src.conversion.geometry.brush_builder import BuiltBrush
from brushwork.src.conversion.brush_types import BrushDefinition
from brushwork.src.conversion.keyvalues import KeyValuesError
from brushwork.src.conversion.mesh_builder import RenderMesh, build_mesh_from_brushes
from brushwork.src.conversion.obj_writer import ObjWriter
from brushwork.src.conversion.vmf_reader import VmfMap, load_vmf
from brushwork.src.validation.core import (
    ValidationError,
    ValidationIssue,
    ValidationResult,
    ValidationStage,
)
from brushwork.src.validation.rules import (
    BRUSH_001,
    BRUSH_002,
    BRUSH_003,
    DISP_001,
    ValidationRule,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PipelineStage(Enum):
    INITIALIZE = "initialize"
    PARSE = "parse"
    BUILD = "build"
    MESH = "mesh"
    EXPORT = "export"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class PipelineError(Exception):
    pass


class PipelineCancelledException(PipelineError):
    pass


# ---------------------------------------------------------------------------
# Settings / Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class PipelineSettings:
    # Brush building
    max_map_extent: float = brush_builder.MAX_MAP_EXTENT
    corner_tolerance: float = 0.1
    flat_fallback_on_bad_displacement: bool = True

    # Meshing
    skip_tool_materials: bool = True
    include_entity_brushes: bool = True

    # Error policy
    strict_parse: bool = False
    fail_fast: bool = False

    # Pipeline behaviour
    workers: int = 1

    # OBJ export path (None = no export)
    export_obj: Optional[str] = None

    def validate(self):
        """Raise PipelineError if any setting is out of range."""
        errors = []
        if self.max_map_extent <= 0:
            errors.append("max_map_extent must be positive")
        if self.corner_tolerance < 0:
            errors.append("corner_tolerance cannot be negative")
        if self.workers < 1:
            errors.append("workers must be at least 1")
        if errors:
            raise PipelineError(f"Invalid settings: {'; '.join(errors)}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineSettings":
        """Create settings from a dictionary; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown pipeline settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PipelineProgress:
    stage: PipelineStage
    stage_progress: float
    message: str
    elapsed_time: float

    @property
    def percentage(self) -> int:
        return int(self.stage_progress * 100)


@dataclass
class PipelineResult:
    success: bool
    brushes: List[BuiltBrush] = field(default_factory=list)
    mesh: Optional[RenderMesh] = None
    validation: ValidationResult = field(
        default_factory=lambda: ValidationResult(stage=ValidationStage.BUILD)
    )
    skipped_brush_ids: List[Optional[int]] = field(default_factory=list)
    output_files: List[str] = field(default_factory=list)
    stages_completed: List[PipelineStage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_time(self) -> float:
        return self.metrics.get("total_time", 0.0)

    def add_error(self, error: str, stage: Optional[PipelineStage] = None):
        if stage:
            error = f"[{stage.value}] {error}"
        self.errors.append(error)

    def add_warning(self, warning: str, stage: Optional[PipelineStage] = None):
        if stage:
            warning = f"[{stage.value}] {warning}"
        self.warnings.append(warning)

    def summary(self) -> str:
        m = self.metrics
        return (
            f"{m.get('built_count', 0)}/{m.get('brush_count', 0)} brushes built, "
            f"{len(self.skipped_brush_ids)} skipped, "
            f"{m.get('displacement_count', 0)} displacements, "
            f"{m.get('triangle_count', 0)} triangles "
            f"in {self.total_time:.2f}s"
        )


# ---------------------------------------------------------------------------
# Brush building
# ---------------------------------------------------------------------------

_ERROR_RULES: List[Tuple[type, ValidationRule]] = [
    (MalformedPlaneError, BRUSH_001),
    (UnclosedBrushError, BRUSH_002),
    (ClipTopologyError, BRUSH_003),
    (DisplacementCornerMismatchError, DISP_001),
]


def issue_for_error(error: BrushGeometryError, file_path: Optional[str] = None) -> ValidationIssue:
    """Validation issue describing a brush geometry error."""
    rule = next((r for cls, r in _ERROR_RULES if isinstance(error, cls)), BRUSH_003)
    if rule is BRUSH_001:
        kwargs = {"points": str(error)}
    else:
        kwargs = {"details": str(error)}
    return rule.issue(
        location=f"brush {error.brush_id}",
        brush_id=error.brush_id,
        face_id=error.face_id,
        file_path=file_path,
        **kwargs,
    )


def build_brush(definition: BrushDefinition, settings: Optional[PipelineSettings] = None,
                issues: Optional[ValidationResult] = None) -> BuiltBrush:
    """Clip one brush and mesh its displacements using ``settings``.

    Raises:
        BrushGeometryError: If the brush can't be built
    """
    settings = settings or PipelineSettings()
    return brush_builder.build_brush(
        definition,
        max_extent=settings.max_map_extent,
        corner_tolerance=settings.corner_tolerance,
        flat_fallback=settings.flat_fallback_on_bad_displacement,
        issues=issues,
    )


# ---------------------------------------------------------------------------
# Main pipeline
# ---------------------------------------------------------------------------

class MapPipeline:
    """Loads a VMF and turns its brushes into render geometry."""

    def __init__(self, settings: Optional[PipelineSettings] = None):
        self.settings = settings or PipelineSettings()
        self.settings.validate()
        self.is_cancelled = False
        self.current_stage = PipelineStage.INITIALIZE
        self.progress_callback: Optional[Callable[[PipelineProgress], None]] = None
        self._start_time = time.time()

    # -- helpers --

    def set_progress_callback(self, callback: Callable[[PipelineProgress], None]):
        self.progress_callback = callback

    def cancel(self):
        self.is_cancelled = True

    def _check_cancellation(self):
        if self.is_cancelled:
            raise PipelineCancelledException("Pipeline cancelled by user")

    def _update_progress(self, stage_progress: float, message: str):
        if self.is_cancelled or self.progress_callback is None:
            return
        self.progress_callback(PipelineProgress(
            stage=self.current_stage,
            stage_progress=stage_progress,
            message=message,
            elapsed_time=time.time() - self._start_time,
        ))

    def _enter_stage(self, stage: PipelineStage):
        self.current_stage = stage
        self._check_cancellation()

    # -- stages --

    def _build_one(self, definition: BrushDefinition,
                   source: Optional[str]) -> Tuple[Optional[BuiltBrush], ValidationResult]:
        """Build a single brush; failures become issues instead of exceptions."""
        self._check_cancellation()
        issues = ValidationResult(stage=ValidationStage.BUILD)
        try:
            built = build_brush(definition, self.settings, issues)
        except BrushGeometryError as e:
            if e.brush_id is None:
                e.brush_id = definition.brush_id
            logger.warning("Skipping brush %s: %s", definition.brush_id, e)
            issues.add_issue(issue_for_error(e, source))
            return None, issues
        if source is not None:
            issues.set_file_path(source)
        return built, issues

    def _build_brushes(self, definitions: List[BrushDefinition], source: Optional[str],
                       result: PipelineResult):
        self._enter_stage(PipelineStage.BUILD)
        self._update_progress(0.0, f"Building {len(definitions)} brushes...")
        build_start = time.time()

        if self.settings.workers > 1 and len(definitions) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.workers) as pool:
                outcomes = list(pool.map(lambda d: self._build_one(d, source), definitions))
        else:
            outcomes = []
            for i, definition in enumerate(definitions):
                outcomes.append(self._build_one(definition, source))
                self._update_progress((i + 1) / len(definitions), f"Brush {definition.brush_id}")

        # Merge in input order
        for definition, (built, issues) in zip(definitions, outcomes):
            result.validation.merge(issues)
            if built is None:
                result.skipped_brush_ids.append(definition.brush_id)
            else:
                result.brushes.append(built)

        result.metrics["build_time"] = time.time() - build_start
        result.metrics["built_count"] = len(result.brushes)
        result.metrics["displacement_count"] = sum(len(b.displacements) for b in result.brushes)
        logger.info("Built %d of %d brushes in %.2fs (%d skipped)",
                    len(result.brushes), len(definitions), result.metrics["build_time"],
                    len(result.skipped_brush_ids))
        self._update_progress(1.0, f"Built {len(result.brushes)} brushes")
        result.stages_completed.append(PipelineStage.BUILD)

    def _build_mesh(self, result: PipelineResult):
        self._enter_stage(PipelineStage.MESH)
        result.mesh = build_mesh_from_brushes(result.brushes, self.settings.skip_tool_materials)
        result.metrics["vertex_count"] = result.mesh.vertex_count
        result.metrics["triangle_count"] = result.mesh.triangle_count
        logger.info("Render mesh: %d vertices, %d triangles",
                    result.mesh.vertex_count, result.mesh.triangle_count)
        result.stages_completed.append(PipelineStage.MESH)

    def _write_obj_file(self, result: PipelineResult):
        """Write the built brushes as OBJ (+ MTL)."""
        self._enter_stage(PipelineStage.EXPORT)
        obj_path = Path(self.settings.export_obj)
        obj_path.parent.mkdir(parents=True, exist_ok=True)
        writer = ObjWriter()
        writer.add_brushes(result.brushes, self.settings.skip_tool_materials)
        writer.write(obj_path)
        result.output_files.append(str(obj_path))
        result.output_files.append(str(obj_path.with_suffix(".mtl")))
        result.stages_completed.append(PipelineStage.EXPORT)

    # -- main entry --

    def process(self, vmf_map: VmfMap, source: Optional[str] = None) -> PipelineResult:
        """Build an already parsed map.

        Raises:
            ValidationError: With ``fail_fast`` when any FAIL issue was found
        """
        self._start_time = time.time()
        result = PipelineResult(success=False)
        result.validation.merge(vmf_map.issues)
        result.skipped_brush_ids.extend(solid_id for solid_id, _ in vmf_map.skipped)

        definitions = vmf_map.all_brushes(self.settings.include_entity_brushes)
        result.metrics["brush_count"] = len(definitions) + len(vmf_map.skipped)
        result.metrics["map_version"] = vmf_map.map_version

        try:
            self._build_brushes(definitions, source, result)
            self._build_mesh(result)
            if self.settings.export_obj:
                self._write_obj_file(result)
        except PipelineCancelledException:
            result.add_error("Pipeline cancelled by user")
            return result
        except OSError as e:
            result.add_error(f"Could not write output: {e}", self.current_stage)
            return result

        self.current_stage = PipelineStage.COMPLETE
        result.success = True
        result.metrics["total_time"] = time.time() - self._start_time
        for issue in result.validation.warnings:
            result.add_warning(issue.message)
        logger.info("Pipeline complete: %s", result.summary())

        if self.settings.fail_fast and result.validation.failed:
            raise ValidationError(result.validation)
        return result

    def run(self, path: Union[str, Path]) -> PipelineResult:
        """Load and build a ``.vmf`` file.

        Unreadable or syntactically broken files give an unsuccessful
        result; with ``fail_fast`` the error is raised instead.
        """
        self._start_time = time.time()
        self.current_stage = PipelineStage.PARSE
        logger.info("Loading %s", path)
        try:
            vmf_map = load_vmf(path, strict=self.settings.strict_parse)
        except (KeyValuesError, VmfParseError) as e:
            if self.settings.fail_fast:
                raise
            logger.error("Failed to load %s: %s", path, e)
            result = PipelineResult(success=False)
            result.add_error(str(e), PipelineStage.PARSE)
            return result
        parse_time = time.time() - self._start_time

        result = self.process(vmf_map, source=str(path))
        result.stages_completed.insert(0, PipelineStage.PARSE)
        result.metrics["parse_time"] = parse_time
        result.metrics["total_time"] = result.metrics.get("total_time", 0.0) + parse_time
        return result
