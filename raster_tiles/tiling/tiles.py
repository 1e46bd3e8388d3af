#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tile extraction from the source raster.

A tile is the raster window under one grid cell, restricted to a band subset
and quantized to 8 bits. Its template (size, transform, CRS) depends only on
the cell and the raster resolution, so the mask for the same cell can be
built from the template alone.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import rasterio
from rasterio.transform import from_origin
from rasterio.windows import Window

from raster_tiles.core.io import RasterReference, TileTemplate, write_raster
from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.tiling.grid import GridCell
from raster_tiles.utils.utils import to_uint8

# Initialize logger
logger = get_module_logger(__name__)


@dataclass
class MaterializedTile:
    """Pixel data of one tile, resident in memory."""
    template: TileTemplate
    data: np.ndarray  # uint8, (bands, height, width)
    empty: bool = False


def tile_template(reference: RasterReference, cell: GridCell) -> TileTemplate:
    """
    Compute the spatial template of a cell's tile.

    Parameters
    ----------
    reference : RasterReference
        Source raster metadata.
    cell : GridCell
        Grid cell.

    Returns
    -------
    TileTemplate
        Template anchored at the cell's top-left corner with the raster's
        pixel size.
    """
    dx, dy = reference.res
    minx, _, _, maxy = cell.bounds
    return TileTemplate(
        width=cell.width,
        height=cell.height,
        transform=from_origin(minx, maxy, dx, dy),
        crs=reference.crs,
    )


def cell_window(cell: GridCell) -> Window:
    return Window(col_off=cell.col_off, row_off=cell.row_off, width=cell.width, height=cell.height)


def extract_tile(
    reference: RasterReference,
    cell: GridCell,
    bands: Sequence[int],
    src: Optional[rasterio.DatasetReader] = None
) -> MaterializedTile:
    """
    Read and quantize the tile for one cell.

    Parameters
    ----------
    reference : RasterReference
        Source raster metadata.
    cell : GridCell
        Cell to read.
    bands : sequence of int
        1-based band indexes to keep, in output order.
    src : rasterio.DatasetReader, optional
        Open dataset to read from. If None, the raster is opened for this
        read only.

    Returns
    -------
    MaterializedTile
        8-bit tile. ``empty`` is True when every pixel is nodata.
    """
    if src is None:
        with rasterio.open(reference.path) as dataset:
            return extract_tile(reference, cell, bands, src=dataset)

    raw = src.read(list(bands), window=cell_window(cell))

    nodata = reference.nodata
    if nodata is None:
        empty = False
    elif np.isnan(nodata):
        empty = bool(np.isnan(raw).all())
    else:
        empty = bool((raw == nodata).all())

    return MaterializedTile(
        template=tile_template(reference, cell),
        data=to_uint8(raw, nodata),
        empty=empty,
    )


def write_tile(
    tile: MaterializedTile,
    path: Union[str, Path],
    compress: str = "lzw",
    driver: str = "GTiff"
) -> None:
    write_raster(path, tile.data, tile.template, compress=compress, driver=driver)
    logger.debug(f"Wrote tile {path}")
