#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Class mask rasterization for a single grid cell.

The mask is allocated on the tile's template, filled with the background id,
and every annotation polygon overlapping the cell is burned with its class id.
Polygons are burned in annotation-layer order, so where polygons overlap the
one that comes later in the layer wins.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from rasterio.features import rasterize
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from raster_tiles.core.config import BACKGROUND_ID
from raster_tiles.core.io import TileTemplate, write_raster
from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.tiling.grid import GridCell

# Initialize logger
logger = get_module_logger(__name__)

POLYGON_TYPES = ("Polygon", "MultiPolygon")


@dataclass
class MaskResult:
    """Rasterized mask plus the number of unlabeled polygons left out."""
    data: np.ndarray  # uint8, (height, width)
    omitted_polygons: int = 0


def _polygonal(geom: BaseGeometry) -> Optional[BaseGeometry]:
    """Return the areal part of a clipped geometry, or None if it has no area."""
    if geom is None or geom.is_empty:
        return None
    if geom.geom_type in POLYGON_TYPES:
        return geom
    if geom.geom_type == "GeometryCollection":
        parts = [g for g in geom.geoms if g.geom_type in POLYGON_TYPES and not g.is_empty]
        if parts:
            return unary_union(parts)
    return None


def clip_annotations(
    annotations: gpd.GeoDataFrame,
    cell: GridCell
) -> List[Tuple[BaseGeometry, Optional[int]]]:
    """
    Clip annotation polygons to one cell.

    Parameters
    ----------
    annotations : gpd.GeoDataFrame
        Annotations in the raster CRS with a nullable ``class_id`` column.
    cell : GridCell
        Cell to clip against.

    Returns
    -------
    list of (geometry, class_id)
        Areal intersections in annotation-layer order. ``class_id`` is None
        for polygons without a resolved label. Intersections that reduce to
        lines or points (polygons only touching the cell) are dropped.
    """
    if len(annotations) == 0:
        return []

    cell_box = cell.geometry
    positions = np.sort(annotations.sindex.query(cell_box, predicate="intersects"))

    clipped = []
    for pos in positions:
        row = annotations.iloc[pos]
        geom = _polygonal(row.geometry.intersection(cell_box))
        if geom is None:
            continue
        class_id = row["class_id"]
        clipped.append((geom, None if pd.isna(class_id) else int(class_id)))
    return clipped


def rasterize_mask(
    annotations: gpd.GeoDataFrame,
    cell: GridCell,
    template: TileTemplate,
    background_id: int = BACKGROUND_ID,
    all_touched: bool = False
) -> MaskResult:
    """
    Burn class ids for one cell onto the tile's template.

    Parameters
    ----------
    annotations : gpd.GeoDataFrame
        Annotations with a nullable ``class_id`` column, in the raster CRS.
    cell : GridCell
        Cell being rasterized.
    template : TileTemplate
        Template of the tile for the same cell.
    background_id : int, optional
        Fill value for pixels not covered by any polygon, by default 0.
    all_touched : bool, optional
        Burn every pixel a polygon touches instead of only pixels whose
        center is inside, by default False.

    Returns
    -------
    MaskResult
        uint8 mask shaped (template.height, template.width).
    """
    shapes = []
    omitted = 0
    for geom, class_id in clip_annotations(annotations, cell):
        if class_id is None:
            omitted += 1
            continue
        shapes.append((geom, class_id))

    if omitted:
        logger.debug(f"Cell {cell.index}: omitted {omitted} unlabeled polygons")

    out_shape = (template.height, template.width)
    if not shapes:
        return MaskResult(np.full(out_shape, background_id, dtype=np.uint8), omitted)

    data = rasterize(
        shapes,
        out_shape=out_shape,
        transform=template.transform,
        fill=background_id,
        all_touched=all_touched,
        dtype="uint8",
    )
    return MaskResult(data, omitted)


def write_mask(
    mask: MaskResult,
    template: TileTemplate,
    path: Union[str, Path],
    compress: str = "lzw",
    driver: str = "GTiff"
) -> None:
    write_raster(path, mask.data, template, compress=compress, driver=driver)
    logger.debug(f"Wrote mask {path}")
