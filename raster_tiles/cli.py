#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Main entry point for the raster tiling pipeline.

This script cuts a georeferenced raster and its polygon annotations into
pixel-aligned tile/mask pairs, or previews the grid and class catalog.
"""
import sys
import argparse
from typing import Any, Dict, List, Optional

from raster_tiles import __version__
from raster_tiles.core.config import DEFAULT_TILE_SIZE, load_config
from raster_tiles.core.io import InputDataError, export_table, load_vector, open_raster_reference
from raster_tiles.core.logging_config import setup_logging, get_module_logger

# Initialize logger
logger = get_module_logger(__name__)

EXIT_OK = 0
EXIT_CELL_FAILURES = 1
EXIT_INPUT_ERROR = 2


def _int_list(value: str) -> List[int]:
    try:
        return [int(item) for item in value.split(",") if item.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected comma-separated integers, got {value!r}")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to a YAML configuration file"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-file",
        help="Also write log messages to this file"
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Cut a georeferenced raster and polygon annotations into "
                    "pixel-aligned training tiles and class masks."
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Raster Tiles v{__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.required = True

    # Full run
    run_parser = subparsers.add_parser("run", help="Produce tiles, masks and the class catalog")
    run_parser.add_argument("--raster", "-r", required=True, help="Path to the input raster")
    run_parser.add_argument("--annotations", "-a", required=True,
                            help="Path to the annotation polygon layer")
    run_parser.add_argument("--aoi", help="Path to the AOI polygon layer (default: whole raster)")
    run_parser.add_argument("--output", "-o", required=True, help="Output directory")
    run_parser.add_argument(
        "--tile-size", "-t",
        type=int,
        help=f"Tile size in pixels (default: {DEFAULT_TILE_SIZE})"
    )
    run_parser.add_argument("--bands", "-b", type=_int_list,
                            help="Comma-separated 1-based bands to keep (default: 1,2,3)")
    run_parser.add_argument("--background-id", type=int, help="Mask background id (default: 0)")
    run_parser.add_argument("--compress", help="Compression: lzw, deflate, zstd, packbits, none")
    run_parser.add_argument("--jobs", "-j", type=int, help="Worker processes (-1 = all cores)")
    run_parser.add_argument("--no-parallel", action="store_true",
                            help="Disable parallel processing")
    run_parser.add_argument("--all-touched", action="store_true", default=None,
                            help="Burn every pixel touched by a polygon")
    run_parser.add_argument("--skip-empty", action="store_true", default=None,
                            help="Skip cells whose raster window is entirely nodata")
    run_parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    rerun = run_parser.add_mutually_exclusive_group()
    rerun.add_argument("--indices", type=_int_list,
                       help="Only process these comma-separated cell indices")
    rerun.add_argument("--rerun-failed", metavar="REPORT",
                       help="Only process the cells that failed in a previous run report")
    _add_common_arguments(run_parser)

    # Grid preview
    grid_parser = subparsers.add_parser("grid", help="Write the selected cell index without tiling")
    grid_parser.add_argument("--raster", "-r", required=True, help="Path to the input raster")
    grid_parser.add_argument("--aoi", help="Path to the AOI polygon layer (default: whole raster)")
    grid_parser.add_argument("--output", "-o", required=True, help="Output CSV file")
    grid_parser.add_argument("--tile-size", "-t", type=int,
                             help=f"Tile size in pixels (default: {DEFAULT_TILE_SIZE})")
    _add_common_arguments(grid_parser)

    # Catalog only
    catalog_parser = subparsers.add_parser("catalog", help="Write the class catalog table")
    catalog_parser.add_argument("--annotations", "-a", required=True,
                                help="Path to the annotation polygon layer")
    catalog_parser.add_argument("--output", "-o", required=True, help="Output CSV file")
    catalog_parser.add_argument("--background-id", type=int, help="Mask background id (default: 0)")
    _add_common_arguments(catalog_parser)

    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    performance = {"n_jobs": getattr(args, "jobs", None)}
    if getattr(args, "no_parallel", False):
        performance["use_parallel"] = False
    if getattr(args, "no_progress", False):
        performance["show_progress"] = False
    return {
        "tiles": {
            "tile_size": getattr(args, "tile_size", None),
            "bands": getattr(args, "bands", None),
            "compress": getattr(args, "compress", None),
            "skip_empty": getattr(args, "skip_empty", None),
        },
        "labels": {
            "background_id": getattr(args, "background_id", None),
            "all_touched": getattr(args, "all_touched", None),
        },
        "performance": performance,
    }


def run_command(args: argparse.Namespace, config: Dict[str, Dict[str, Any]]) -> int:
    """Run the full pipeline; returns 1 if any cell failed."""
    from raster_tiles.pipeline import run_pipeline
    from raster_tiles.utils.metadata import failed_indices, load_report

    indices = args.indices
    if args.rerun_failed:
        indices = failed_indices(load_report(args.rerun_failed))
        logger.info(f"Re-running {len(indices)} failed cells from {args.rerun_failed}")

    report = run_pipeline(
        raster=args.raster,
        annotations=args.annotations,
        output_dir=args.output,
        aoi=args.aoi,
        config=config,
        indices=indices,
    )
    return EXIT_OK if report.ok else EXIT_CELL_FAILURES


def grid_command(args: argparse.Namespace, config: Dict[str, Dict[str, Any]]) -> int:
    """Write the selected cells to CSV without producing tiles."""
    from raster_tiles.pipeline import plan_cells
    from raster_tiles.tiling.grid import cells_to_frame
    from raster_tiles.utils.metadata import cells_table

    reference = open_raster_reference(args.raster)
    cells, selected = plan_cells(reference, args.aoi, config)
    export_table(cells_table(cells_to_frame(selected)), args.output)
    logger.info(f"{len(selected)} of {len(cells)} cells selected")
    return EXIT_OK


def catalog_command(args: argparse.Namespace, config: Dict[str, Dict[str, Any]]) -> int:
    """Write the class catalog of an annotation layer."""
    from raster_tiles.tiling.catalog import build_class_catalog

    label_config = config["labels"]
    annotations = load_vector(
        args.annotations, None, [label_config["label_field"]], name="annotations"
    )
    catalog = build_class_catalog(
        annotations[label_config["label_field"]], background_id=label_config["background_id"]
    )
    catalog.save(args.output)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the tiling pipeline.
    """
    args = parse_arguments(argv)
    setup_logging(log_level=args.log_level, log_file=args.log_file)

    commands = {
        "run": run_command,
        "grid": grid_command,
        "catalog": catalog_command,
    }

    try:
        config = load_config(args.config, overrides=_overrides(args))
        return commands[args.command](args, config)
    except (InputDataError, ValueError, OSError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
