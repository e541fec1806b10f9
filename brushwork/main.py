#!/usr/bin/env python3
"""
brushwork - Main Entry Point

Loads a Hammer .vmf map, builds every brush into explicit geometry and
prints a summary with the validation report.  Optionally exports the
result as Wavefront OBJ.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from brushwork.src.conversion.errors import VmfParseError
from brushwork.src.conversion.keyvalues import KeyValuesError
from brushwork.src.pipeline.map_pipeline import MapPipeline, PipelineError, PipelineSettings
from brushwork.src.pipeline.settings_storage import load_settings_from_path
from brushwork.src.validation.core import ValidationError

logger = logging.getLogger("brushwork")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brushwork",
        description="Build brush and displacement geometry from a Hammer VMF map.",
    )
    parser.add_argument("map", type=Path, help="path to the .vmf file")
    parser.add_argument("--obj", type=Path, default=None, help="write the geometry as OBJ (+ MTL)")
    parser.add_argument("--workers", type=int, default=None, help="build brushes on N threads")
    parser.add_argument("--strict", action="store_true", help="abort on the first unparseable solid")
    parser.add_argument("--fail-fast", action="store_true",
                        help="exit with an error as soon as validation fails")
    parser.add_argument("--keep-tools", action="store_true",
                        help="include tools/ materials (nodraw, clip, ...) in the output")
    parser.add_argument("--settings", type=Path, default=None, help="JSON settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _resolve_settings(args: argparse.Namespace) -> PipelineSettings:
    settings = None
    if args.settings is not None:
        settings = load_settings_from_path(args.settings)
        if settings is None:
            raise PipelineError(f"Could not load settings from {args.settings}")
    settings = settings or PipelineSettings()

    # Command line flags override the settings file
    if args.obj is not None:
        settings.export_obj = str(args.obj)
    if args.workers is not None:
        settings.workers = args.workers
    if args.strict:
        settings.strict_parse = True
    if args.fail_fast:
        settings.fail_fast = True
    if args.keep_tools:
        settings.skip_tool_materials = False
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        pipeline = MapPipeline(_resolve_settings(args))
        result = pipeline.run(args.map)
    except PipelineError as e:
        logger.error("%s", e)
        return 2
    except ValidationError as e:
        print(e.result.report())
        return 1
    except (KeyValuesError, VmfParseError) as e:
        logger.error("Failed to load %s: %s", args.map, e)
        return 1

    for error in result.errors:
        logger.error("%s", error)
    if not result.success:
        return 1

    print(f"{args.map}: {result.summary()}")
    for path in result.output_files:
        print(f"  wrote {path}")
    print(result.validation.report())
    return 0 if result.validation.passed else 1


if __name__ == "__main__":
    sys.exit(main())
