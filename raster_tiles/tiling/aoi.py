#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Area-of-interest filtering of grid cells.
"""
from typing import List, Optional, Sequence

import geopandas as gpd

from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.tiling.grid import GridCell, cells_to_frame
from raster_tiles.utils.utils import timer

# Initialize logger
logger = get_module_logger(__name__)


def active_aoi(aoi: gpd.GeoDataFrame, status_field: str = "status") -> gpd.GeoDataFrame:
    """Keep only AOI polygons whose status attribute is set."""
    active = aoi[aoi[status_field].notna()]
    logger.info(f"{len(active)} of {len(aoi)} AOI polygons are active")
    return active


@timer
def select_cells(
    cells: Sequence[GridCell],
    aoi: Optional[gpd.GeoDataFrame]
) -> List[GridCell]:
    """
    Select the cells that intersect at least one AOI polygon.

    Parameters
    ----------
    cells : sequence of GridCell
        Full grid, in the same CRS as the AOI.
    aoi : gpd.GeoDataFrame or None
        Active AOI polygons. None selects every cell.

    Returns
    -------
    list of GridCell
        Selected cells in grid order, with their original indices.
        Boundary contact counts as intersection.
    """
    if aoi is None:
        logger.info(f"No AOI given, selecting all {len(cells)} cells")
        return list(cells)

    if len(aoi) == 0 or len(cells) == 0:
        logger.warning("No active AOI polygons, no cells selected")
        return []

    grid = cells_to_frame(cells, crs=aoi.crs)
    joined = gpd.sjoin(
        grid[["cell_index", "geometry"]],
        gpd.GeoDataFrame(geometry=aoi.geometry.values, crs=aoi.crs),
        how="inner",
        predicate="intersects",
    )
    hit = set(joined["cell_index"].tolist())

    selected = [cell for cell in cells if cell.index in hit]
    logger.info(f"Selected {len(selected)} of {len(cells)} cells intersecting the AOI")
    return selected
