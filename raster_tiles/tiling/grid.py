#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Regular grid generation over a raster extent.

Cells are laid out from the raster's top-left origin in row-major order
(top row first, left to right) and numbered from 1. Cells on the right and
bottom edges are clipped to the raster extent rather than padded, so every
cell maps onto a whole-pixel window of the source raster.
"""
import math
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

import geopandas as gpd
import pandas as pd
from shapely.geometry import box

from raster_tiles.core.io import RasterReference
from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.utils.utils import timer

# Initialize logger
logger = get_module_logger(__name__)


@dataclass(frozen=True)
class GridCell:
    """One grid cell: absolute index, map bounds and pixel window."""
    index: int
    bounds: Tuple[float, float, float, float]  # (minx, miny, maxx, maxy)
    col_off: int
    row_off: int
    width: int
    height: int

    @property
    def geometry(self):
        return box(*self.bounds)


def _pixel_count(extent: float, resolution: float) -> int:
    # Extents are whole multiples of the resolution up to float noise
    return int(round(extent / resolution))


@timer
def generate_grid(
    bounds: Sequence[float],
    res: Sequence[float],
    tile_size: int
) -> List[GridCell]:
    """
    Tile a raster extent into fixed-size cells.

    Parameters
    ----------
    bounds : sequence of float
        Raster extent as (left, bottom, right, top).
    res : sequence of float
        Pixel size as positive (dx, dy).
    tile_size : int
        Cell size in pixels.

    Returns
    -------
    list of GridCell
        Cells in row-major order with indices 1..n. Identical inputs always
        give an identical sequence.
    """
    if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size <= 0:
        raise ValueError(f"tile_size must be a positive integer, got {tile_size!r}")

    left, bottom, right, top = bounds
    dx, dy = res
    if dx <= 0 or dy <= 0:
        raise ValueError(f"Resolution must be positive, got {res!r}")

    width = _pixel_count(right - left, dx)
    height = _pixel_count(top - bottom, dy)
    if width <= 0 or height <= 0:
        raise ValueError(f"Empty raster extent: {bounds!r}")

    n_rows = math.ceil(height / tile_size)
    n_cols = math.ceil(width / tile_size)

    cells = []
    index = 1
    for row in range(n_rows):
        row_off = row * tile_size
        cell_height = min(tile_size, height - row_off)
        for col in range(n_cols):
            col_off = col * tile_size
            cell_width = min(tile_size, width - col_off)

            minx = left + col_off * dx
            maxx = left + (col_off + cell_width) * dx
            maxy = top - row_off * dy
            miny = top - (row_off + cell_height) * dy

            cells.append(GridCell(
                index=index,
                bounds=(minx, miny, maxx, maxy),
                col_off=col_off,
                row_off=row_off,
                width=cell_width,
                height=cell_height,
            ))
            index += 1

    logger.info(f"Generated {len(cells)} cells ({n_rows} rows x {n_cols} cols) of {tile_size} px")
    return cells


def grid_from_reference(reference: RasterReference, tile_size: int) -> List[GridCell]:
    """Generate the grid covering a raster's full extent."""
    return generate_grid(reference.bounds, reference.res, tile_size)


def cells_to_frame(cells: Sequence[GridCell], crs: Any = None) -> gpd.GeoDataFrame:
    """
    Convert cells to a GeoDataFrame with a ``cell_index`` column.

    Parameters
    ----------
    cells : sequence of GridCell
        Cells to convert.
    crs : CRS-like, optional
        Coordinate reference system of the cell bounds.

    Returns
    -------
    gpd.GeoDataFrame
        One row per cell with window columns and box geometry.
    """
    records = pd.DataFrame(
        {
            "cell_index": [cell.index for cell in cells],
            "minx": [cell.bounds[0] for cell in cells],
            "miny": [cell.bounds[1] for cell in cells],
            "maxx": [cell.bounds[2] for cell in cells],
            "maxy": [cell.bounds[3] for cell in cells],
            "col_off": [cell.col_off for cell in cells],
            "row_off": [cell.row_off for cell in cells],
            "width": [cell.width for cell in cells],
            "height": [cell.height for cell in cells],
        }
    )
    geometry = [cell.geometry for cell in cells]
    frame = gpd.GeoDataFrame(records, geometry=geometry, crs=crs)
    return frame
