"""
brushwork Map Pipeline Module.

Provides VMF loading, per-brush building and mesh/OBJ export.
"""

from .map_pipeline import (
    MapPipeline,
    PipelineSettings,
    PipelineResult,
    PipelineProgress,
    PipelineStage,
    PipelineError,
    PipelineCancelledException,
    build_brush,
)

__all__ = [
    'MapPipeline',
    'PipelineSettings',
    'PipelineResult',
    'PipelineProgress',
    'PipelineStage',
    'PipelineError',
    'PipelineCancelledException',
    'build_brush',
]
