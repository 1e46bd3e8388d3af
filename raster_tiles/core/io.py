#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Input/output handling for the raster tiling pipeline.

This module handles opening the source raster as a metadata-only reference,
loading and reprojecting vector layers, and writing tiles, masks and tables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import rasterio
from pyproj import CRS
from pyproj.exceptions import CRSError, ProjError
from rasterio.errors import RasterioIOError
from rasterio.transform import Affine

from raster_tiles.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)

PathLike = Union[str, Path]


class InputDataError(RuntimeError):
    """Fatal problem with a run's inputs, detected before any tile is produced."""


@dataclass(frozen=True)
class RasterReference:
    """
    Metadata of a source raster, without any pixel data loaded.

    Holds everything needed to build the grid and per-cell templates; worker
    processes reopen ``path`` to read their own windows.
    """
    path: str
    crs: Any
    transform: Affine
    width: int
    height: int
    count: int
    dtypes: Tuple[str, ...]
    nodata: Optional[float]
    driver: str

    @property
    def res(self) -> Tuple[float, float]:
        """Pixel size as positive (dx, dy)."""
        return (self.transform.a, -self.transform.e)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Extent as (left, bottom, right, top)."""
        left, top = self.transform.c, self.transform.f
        right = left + self.width * self.transform.a
        bottom = top + self.height * self.transform.e
        return (left, bottom, right, top)


@dataclass(frozen=True)
class TileTemplate:
    """Spatial template shared by the tile and the mask of one grid cell."""
    width: int
    height: int
    transform: Affine
    crs: Any


def open_raster_reference(path: PathLike) -> RasterReference:
    """
    Read raster metadata without loading pixels.

    Parameters
    ----------
    path : str or Path
        Path to a georeferenced raster readable by rasterio.

    Returns
    -------
    RasterReference
        Metadata of the raster.

    Raises
    ------
    InputDataError
        If the file is missing or unreadable, has no coordinate reference
        system, or is not a north-up raster.
    """
    path = Path(path)
    logger.info(f"Opening raster reference {path}")

    if not path.exists():
        raise InputDataError(f"Raster not found: {path}")

    try:
        with rasterio.open(path) as src:
            reference = RasterReference(
                path=str(path),
                crs=src.crs,
                transform=src.transform,
                width=src.width,
                height=src.height,
                count=src.count,
                dtypes=tuple(src.dtypes),
                nodata=src.nodata,
                driver=src.driver,
            )
    except RasterioIOError as e:
        raise InputDataError(f"Failed to open raster {path}: {e}") from e

    if reference.crs is None:
        raise InputDataError(f"Raster {path} has no coordinate reference system")

    transform = reference.transform
    if transform.b != 0 or transform.d != 0:
        raise InputDataError(f"Raster {path} has a rotated or sheared transform: {transform}")
    if transform.a <= 0 or transform.e >= 0:
        raise InputDataError(f"Raster {path} is not north-up: {transform}")

    logger.info(
        f"Raster {reference.width}x{reference.height} pixels, {reference.count} bands, "
        f"resolution {reference.res}, CRS {reference.crs}"
    )
    return reference


def check_bands(reference: RasterReference, bands: Iterable[int]) -> None:
    """Raise InputDataError if any band index is outside the raster's bands."""
    missing = [band for band in bands if band < 1 or band > reference.count]
    if missing:
        raise InputDataError(
            f"Bands {missing} not present in {reference.path} ({reference.count} bands)"
        )


def load_vector(
    source: Union[PathLike, gpd.GeoDataFrame],
    target_crs: Any,
    required_fields: Iterable[str] = (),
    name: str = "vector"
) -> gpd.GeoDataFrame:
    """
    Load a vector layer and reproject it into the raster's CRS.

    Parameters
    ----------
    source : str, Path or GeoDataFrame
        File readable by geopandas, or an already loaded layer.
    target_crs : CRS-like or None
        Coordinate reference system of the raster. None skips the CRS
        check and reprojection, for uses that need only attributes.
    required_fields : iterable of str, optional
        Attribute columns that must exist (values may be null).
    name : str, optional
        Layer name used in messages.

    Returns
    -------
    gpd.GeoDataFrame
        Layer in the target CRS with a fresh 0..n-1 index preserving the
        source row order. Rows with null or empty geometry are dropped.
    """
    if isinstance(source, gpd.GeoDataFrame):
        gdf = source.copy()
        logger.info(f"Using in-memory {name} layer with {len(gdf)} features")
    else:
        path = Path(source)
        if not path.exists():
            raise InputDataError(f"{name.capitalize()} layer not found: {path}")
        try:
            gdf = gpd.read_file(path)
        except Exception as e:
            raise InputDataError(f"Failed to read {name} layer {path}: {e}") from e
        logger.info(f"Loaded {name} layer {path} with {len(gdf)} features")

    missing = [field for field in required_fields if field not in gdf.columns]
    if missing:
        raise InputDataError(f"{name.capitalize()} layer is missing attribute(s): {missing}")

    invalid = gdf.geometry.isna() | gdf.geometry.is_empty
    if invalid.any():
        logger.warning(f"Dropping {int(invalid.sum())} {name} features with empty geometry")
        gdf = gdf[~invalid]

    if target_crs is None:
        return gdf.reset_index(drop=True)

    if gdf.crs is None:
        raise InputDataError(f"{name.capitalize()} layer has no coordinate reference system")

    try:
        target = CRS.from_user_input(_crs_input(target_crs))
        if not gdf.crs.equals(target, ignore_axis_order=True):
            logger.info(f"Reprojecting {name} layer from {gdf.crs.to_string()} to {target.to_string()}")
            gdf = gdf.to_crs(target)
    except (CRSError, ProjError) as e:
        raise InputDataError(f"Cannot reproject {name} layer into the raster CRS: {e}") from e

    return gdf.reset_index(drop=True)


def _crs_input(crs: Any) -> Any:
    # rasterio CRS objects expose to_wkt; pyproj accepts the WKT string
    if hasattr(crs, "to_wkt") and not isinstance(crs, CRS):
        return crs.to_wkt()
    return crs


def output_paths(output_dir: PathLike, index: int, tile_config: Dict[str, Any]) -> Tuple[Path, Path]:
    """
    Return the (tile, mask) file paths for a cell index.

    Files are ``tiles/tile_{index:06d}.<ext>`` and
    ``masks/tile_{index:06d}_M.<ext>`` under ``output_dir``.
    """
    output_dir = Path(output_dir)
    ext = tile_config.get("extension", "tif")
    tile_path = output_dir / tile_config.get("tiles_dirname", "tiles") / f"tile_{index:06d}.{ext}"
    mask_path = output_dir / tile_config.get("masks_dirname", "masks") / f"tile_{index:06d}_M.{ext}"
    return tile_path, mask_path


def write_raster(
    path: PathLike,
    array: np.ndarray,
    template: TileTemplate,
    compress: str = "lzw",
    driver: str = "GTiff"
) -> None:
    """
    Write an 8-bit array on a tile template.

    Parameters
    ----------
    path : str or Path
        Output file; parent directories are created.
    array : np.ndarray
        uint8 array shaped (bands, height, width) or (height, width).
    template : TileTemplate
        Dimensions, transform and CRS of the output.
    compress : str, optional
        Lossless compression scheme, 'none' disables compression.
    driver : str, optional
        GDAL driver name, by default 'GTiff'.
    """
    if array.ndim == 2:
        array = array[np.newaxis, ...]
    if array.shape[1:] != (template.height, template.width):
        raise ValueError(
            f"Array shape {array.shape[1:]} does not match template "
            f"{(template.height, template.width)}"
        )
    if array.dtype != np.uint8:
        raise ValueError(f"Expected uint8 array, got {array.dtype}")

    path = Path(path)
    os.makedirs(path.parent, exist_ok=True)

    profile = {
        "driver": driver,
        "height": template.height,
        "width": template.width,
        "count": array.shape[0],
        "dtype": "uint8",
        "crs": template.crs,
        "transform": template.transform,
    }
    if compress and compress != "none":
        profile["compress"] = compress

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(array)


def export_table(df: pd.DataFrame, output_path: PathLike) -> None:
    """
    Export a table to CSV.

    Parameters
    ----------
    df : pd.DataFrame
        Table to write.
    output_path : str or Path
        Path to output CSV file.
    """
    output_dir = os.path.dirname(str(output_path))
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    logger.info(f"Exporting {len(df)} rows to {output_path}")
    df.to_csv(output_path, index=False)
