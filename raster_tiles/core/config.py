#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration settings for the raster tiling pipeline.

This module centralizes all configuration parameters used across the tiling
modules, making it easier to modify settings in one place. A run works on a
copy of these defaults returned by :func:`load_config`, optionally merged with
a YAML file and explicit overrides.
"""
from typing import Dict, List, Union, Any, Optional
import copy
from pathlib import Path

import yaml

# General configuration
DEFAULT_TILE_SIZE: int = 512
DEFAULT_BANDS: List[int] = [1, 2, 3]
BACKGROUND_ID: int = 0
N_JOBS: int = -1         # Number of parallel workers (-1 = all cores)

# Path configuration
DEFAULT_OUTPUT_DIR: Path = Path.cwd() / "output"

# Lossless GeoTIFF compression schemes accepted by GDAL
VALID_COMPRESSION: List[str] = ["lzw", "deflate", "zstd", "packbits", "none"]

# Tile output configuration
TILE_CONFIG: Dict[str, Any] = {
    "tile_size": DEFAULT_TILE_SIZE,
    "bands": DEFAULT_BANDS,
    "compress": "lzw",
    "driver": "GTiff",
    "extension": "tif",
    "tiles_dirname": "tiles",
    "masks_dirname": "masks",
    "skip_empty": False,   # Skip cells whose raster window is entirely nodata
}

# Annotation and class catalog configuration
LABEL_CONFIG: Dict[str, Any] = {
    "label_field": "label",
    "status_field": "status",
    "background_id": BACKGROUND_ID,
    "all_touched": False,  # Burn every pixel touched by a polygon, not only centers
    "catalog_filename": "class_catalog.csv",
}

# Performance tuning
PERFORMANCE_CONFIG: Dict[str, Any] = {
    "use_parallel": True,
    "n_jobs": N_JOBS,
    "show_progress": True,
}

# Export configuration
EXPORT_CONFIG: Dict[str, Any] = {
    "report_filename": "run_report",
    "report_format": "json",  # Options: 'json', 'yaml'
    "cells_filename": "cells.csv",
}

# Logging configuration
LOGGING_CONFIG: Dict[str, Any] = {
    "level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    "log_to_file": False,
    "log_file": DEFAULT_OUTPUT_DIR / "tiling.log",
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Sections a YAML configuration file may override
CONFIG_SECTIONS: Dict[str, Dict[str, Any]] = {
    "tiles": TILE_CONFIG,
    "labels": LABEL_CONFIG,
    "performance": PERFORMANCE_CONFIG,
    "export": EXPORT_CONFIG,
}


def default_config() -> Dict[str, Dict[str, Any]]:
    """Return a deep copy of the default configuration sections."""
    return {name: copy.deepcopy(section) for name, section in CONFIG_SECTIONS.items()}


def _merge_section(
    config: Dict[str, Dict[str, Any]],
    section: str,
    values: Dict[str, Any],
    source: str
) -> None:
    if section not in config:
        raise ValueError(f"Unknown configuration section '{section}' in {source}")
    if not isinstance(values, dict):
        raise ValueError(f"Configuration section '{section}' in {source} must be a mapping")
    for key, value in values.items():
        if key not in config[section]:
            raise ValueError(f"Unknown configuration key '{section}.{key}' in {source}")
        config[section][key] = value


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None
) -> Dict[str, Dict[str, Any]]:
    """
    Build the configuration for one run.

    Parameters
    ----------
    path : str or Path, optional
        YAML file whose top-level keys are configuration sections
        ('tiles', 'labels', 'performance', 'export').
    overrides : dict, optional
        Nested dictionary of section -> key -> value applied last.
        Values of None are ignored so that unset CLI flags keep the
        file or default value.

    Returns
    -------
    dict
        Validated configuration dictionary.
    """
    config = default_config()

    if path is not None:
        with open(path, "r") as f:
            file_values = yaml.safe_load(f) or {}
        if not isinstance(file_values, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        for section, values in file_values.items():
            _merge_section(config, section, values, str(path))

    if overrides:
        for section, values in overrides.items():
            values = {k: v for k, v in values.items() if v is not None}
            _merge_section(config, section, values, "overrides")

    validate_config(config)
    return config


def validate_config(config: Dict[str, Dict[str, Any]]) -> None:
    """
    Check configuration values, raising ValueError on the first problem.

    Parameters
    ----------
    config : dict
        Configuration dictionary as returned by :func:`load_config`.
    """
    tiles = config["tiles"]
    labels = config["labels"]
    performance = config["performance"]
    export = config["export"]

    tile_size = tiles["tile_size"]
    if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size <= 0:
        raise ValueError(f"tile_size must be a positive integer, got {tile_size!r}")

    bands = tiles["bands"]
    if not isinstance(bands, (list, tuple)) or len(bands) == 0:
        raise ValueError(f"bands must be a non-empty list, got {bands!r}")
    for band in bands:
        if isinstance(band, bool) or not isinstance(band, int) or band < 1:
            raise ValueError(f"Band indexes are 1-based positive integers, got {band!r}")
    tiles["bands"] = list(bands)

    compress = str(tiles["compress"]).lower()
    if compress not in VALID_COMPRESSION:
        raise ValueError(f"compress must be one of {VALID_COMPRESSION}, got {tiles['compress']!r}")
    tiles["compress"] = compress

    background_id = labels["background_id"]
    if isinstance(background_id, bool) or not isinstance(background_id, int) or not 0 <= background_id <= 255:
        raise ValueError(f"background_id must be an integer in 0..255, got {background_id!r}")

    n_jobs = performance["n_jobs"]
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or (n_jobs != -1 and n_jobs < 1):
        raise ValueError(f"n_jobs must be -1 or a positive integer, got {n_jobs!r}")

    if str(export["report_format"]).lower() not in ("json", "yaml"):
        raise ValueError(f"report_format must be 'json' or 'yaml', got {export['report_format']!r}")
    export["report_format"] = str(export["report_format"]).lower()
