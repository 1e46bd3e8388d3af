#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Driver for the raster tiling pipeline.

Stages run in a fixed order with explicit inputs and outputs:

1. open the raster reference and load the vector layers (fatal on bad input)
2. build and save the class catalog
3. generate the grid and select the cells intersecting the active AOI
4. produce the tile and mask of every selected cell on a worker pool
5. write the cell index table and the run report
"""
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import geopandas as gpd

from raster_tiles.core.config import load_config
from raster_tiles.core.io import (
    RasterReference, check_bands, export_table, load_vector,
    open_raster_reference, output_paths
)
from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.tiling.aoi import active_aoi, select_cells
from raster_tiles.tiling.catalog import ClassCatalog, build_class_catalog, resolve_class_ids
from raster_tiles.tiling.grid import GridCell, cells_to_frame, grid_from_reference
from raster_tiles.tiling.masks import rasterize_mask, write_mask
from raster_tiles.tiling.tiles import extract_tile, write_tile
from raster_tiles.utils.metadata import (
    RunReport, cells_table, log_report_summary, save_report
)
from raster_tiles.utils.utils import (
    CellResult, STATUS_PROCESSED, STATUS_SKIPPED, run_cells
)

# Initialize logger
logger = get_module_logger(__name__)

VectorSource = Union[str, Path, gpd.GeoDataFrame]


@dataclass(frozen=True)
class CellContext:
    """Read-only state shared by every cell task of a run."""
    reference: RasterReference
    annotations: gpd.GeoDataFrame
    output_dir: str
    config: Dict[str, Dict[str, Any]]


def process_cell(cell: GridCell, context: CellContext) -> CellResult:
    """
    Produce the tile and mask for one cell.

    Exceptions propagate to the executor, which records them against the
    cell index. A failing cell leaves neither of its two files behind.
    """
    tile_config = context.config["tiles"]
    label_config = context.config["labels"]

    tile = extract_tile(context.reference, cell, tile_config["bands"])
    if tile_config["skip_empty"] and tile.empty:
        return CellResult(index=cell.index, status=STATUS_SKIPPED, reason="empty")

    mask = rasterize_mask(
        context.annotations,
        cell,
        tile.template,
        background_id=label_config["background_id"],
        all_touched=label_config["all_touched"],
    )

    tile_path, mask_path = output_paths(context.output_dir, cell.index, tile_config)
    try:
        write_tile(tile, tile_path, compress=tile_config["compress"], driver=tile_config["driver"])
        write_mask(mask, tile.template, mask_path,
                   compress=tile_config["compress"], driver=tile_config["driver"])
    except Exception:
        for path in (tile_path, mask_path):
            if path.exists():
                path.unlink()
        raise

    return CellResult(
        index=cell.index,
        status=STATUS_PROCESSED,
        tile_path=str(tile_path),
        mask_path=str(mask_path),
        omitted_polygons=mask.omitted_polygons,
    )


def plan_cells(
    reference: RasterReference,
    aoi: Optional[VectorSource],
    config: Dict[str, Dict[str, Any]]
) -> Tuple[List[GridCell], List[GridCell]]:
    """
    Generate the grid and select the cells intersecting the active AOI.

    Returns
    -------
    tuple
        (all cells, selected cells). Without an AOI every cell is selected.
    """
    status_field = config["labels"]["status_field"]
    aoi_active = None
    if aoi is not None:
        aoi_layer = load_vector(aoi, reference.crs, [status_field], name="AOI")
        aoi_active = active_aoi(aoi_layer, status_field)

    cells = grid_from_reference(reference, config["tiles"]["tile_size"])
    selected = select_cells(cells, aoi_active)
    return cells, selected


def build_catalog(
    annotations: gpd.GeoDataFrame,
    config: Dict[str, Dict[str, Any]],
    output_path: Optional[Union[str, Path]] = None
) -> ClassCatalog:
    """Build the class catalog from loaded annotations and optionally save it."""
    label_config = config["labels"]
    catalog = build_class_catalog(
        annotations[label_config["label_field"]],
        background_id=label_config["background_id"],
    )
    if output_path is not None:
        catalog.save(output_path)
    return catalog


def _restrict(selected: List[GridCell], cells: Sequence[GridCell], indices: Sequence[int]) -> List[GridCell]:
    wanted = set(int(i) for i in indices)
    known = {cell.index for cell in cells}
    unknown = sorted(wanted - known)
    if unknown:
        logger.warning(f"Ignoring indices outside the grid: {unknown}")
    outside = sorted(wanted & known - {cell.index for cell in selected})
    if outside:
        logger.warning(f"Ignoring indices outside the AOI selection: {outside}")
    return [cell for cell in selected if cell.index in wanted]


def run_pipeline(
    raster: Union[str, Path],
    annotations: VectorSource,
    output_dir: Union[str, Path],
    aoi: Optional[VectorSource] = None,
    config: Optional[Dict[str, Dict[str, Any]]] = None,
    indices: Optional[Sequence[int]] = None
) -> RunReport:
    """
    Cut a raster and its annotations into tile/mask pairs.

    Parameters
    ----------
    raster : str or Path
        Georeferenced multi-band raster.
    annotations : str, Path or GeoDataFrame
        Annotation polygons with a label attribute.
    output_dir : str or Path
        Directory receiving the catalog, tiles/, masks/, cell table and report.
    aoi : str, Path or GeoDataFrame, optional
        AOI polygons with a status attribute. None selects every cell.
    config : dict, optional
        Configuration from :func:`load_config`. Defaults when None.
    indices : sequence of int, optional
        Restrict processing to these absolute cell indices (re-runs).

    Returns
    -------
    RunReport
        Per-cell outcomes of the run.

    Raises
    ------
    InputDataError
        For unreadable inputs or CRS problems, before any cell is processed.
    """
    start_time = time.time()
    config = config if config is not None else load_config()
    tile_config = config["tiles"]
    label_config = config["labels"]
    performance = config["performance"]
    export = config["export"]
    output_dir = Path(output_dir)

    logger.info(f"Starting tiling of {raster} into {output_dir}")

    # Inputs
    reference = open_raster_reference(raster)
    check_bands(reference, tile_config["bands"])
    annotation_layer = load_vector(
        annotations, reference.crs, [label_config["label_field"]], name="annotations"
    )

    # Catalog
    catalog = build_catalog(
        annotation_layer, config, output_dir / label_config["catalog_filename"]
    )

    # Grid and AOI selection
    cells, selected = plan_cells(reference, aoi, config)
    if indices is not None:
        selected = _restrict(selected, cells, indices)

    # Per-cell work
    resolved = resolve_class_ids(annotation_layer, catalog, label_config["label_field"])
    resolved = resolved[["class_id", resolved.geometry.name]]
    context = CellContext(
        reference=reference,
        annotations=resolved,
        output_dir=str(output_dir),
        config=config,
    )
    results = run_cells(
        process_cell,
        selected,
        n_jobs=performance["n_jobs"],
        args=(context,),
        use_parallel=performance["use_parallel"],
        progress=performance["show_progress"],
    )

    # Report
    suffix = "_rerun" if indices is not None else ""
    cells_path = output_dir / export["cells_filename"]
    if suffix:
        cells_path = cells_path.with_name(f"{cells_path.stem}{suffix}{cells_path.suffix}")
    export_table(cells_table(cells_to_frame(selected), results), cells_path)

    report = RunReport(
        raster=str(raster),
        total_cells=len(cells),
        selected_cells=len(selected),
        results=results,
        elapsed_seconds=time.time() - start_time,
        config=config,
    )
    report_format = export["report_format"]
    report_path = output_dir / f"{export['report_filename']}{suffix}.{report_format}"
    save_report(report, report_path, format=report_format)
    log_report_summary(report)
    return report
