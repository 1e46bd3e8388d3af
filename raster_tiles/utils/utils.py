#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility functions for the raster tiling pipeline.

This module provides common utility functions used across the tiling
modules: timing, 8-bit quantization, and the per-cell parallel executor.
"""
import os
import time
import functools
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from raster_tiles.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)

STATUS_PROCESSED = "processed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


def timer(func: Callable) -> Callable:
    """
    Decorator to time function execution.

    Parameters
    ----------
    func : Callable
        Function to time.

    Returns
    -------
    Callable
        Wrapped function with timing.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        logger.debug(f"Function {func.__name__} took {elapsed:.2f} seconds to run")
        return result
    return wrapper


def to_uint8(array: np.ndarray, nodata: Optional[float] = None) -> np.ndarray:
    """
    Quantize pixel values to the 8-bit output range.

    Values are rounded to the nearest integer and clamped to [0, 255];
    no rescaling is applied. NaN, infinite and nodata pixels become 0.

    Parameters
    ----------
    array : np.ndarray
        Input array of any numeric dtype.
    nodata : float, optional
        Source nodata value.

    Returns
    -------
    np.ndarray
        uint8 array of the same shape.
    """
    if array.dtype == np.uint8 and nodata is None:
        return array.copy()

    data = array.astype(np.float64)
    invalid = ~np.isfinite(data)
    if nodata is not None and not np.isnan(nodata):
        invalid |= data == nodata

    quantized = np.clip(np.rint(data), 0, 255)
    quantized[invalid] = 0
    return quantized.astype(np.uint8)


@dataclass
class CellResult:
    """Outcome of producing the tile and mask of one grid cell."""
    index: int
    status: str
    tile_path: Optional[str] = None
    mask_path: Optional[str] = None
    omitted_polygons: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def resolve_n_jobs(n_jobs: Optional[int], n_tasks: int) -> int:
    """Return the worker count: -1 or None means all cores, never more than tasks."""
    if n_jobs is None or n_jobs < 1:
        n_jobs = os.cpu_count() or 1
    return max(1, min(n_jobs, n_tasks))


def _failure(index: int, error: BaseException) -> CellResult:
    reason = f"{type(error).__name__}: {error}"
    logger.error(f"Cell {index} failed: {reason}")
    return CellResult(index=index, status=STATUS_FAILED, reason=reason)


def _guarded(func: Callable[..., CellResult], cell: Any, *args) -> CellResult:
    try:
        return func(cell, *args)
    except Exception as e:
        return _failure(cell.index, e)


def run_cells(
    func: Callable[..., CellResult],
    cells: Sequence[Any],
    n_jobs: Optional[int] = None,
    args: tuple = (),
    use_parallel: bool = True,
    prefer: str = "processes",
    progress: bool = True
) -> List[CellResult]:
    """
    Apply a per-cell function over a worker pool, isolating failures.

    Parameters
    ----------
    func : Callable
        Picklable function called as ``func(cell, *args)`` and returning a
        CellResult.
    cells : sequence
        Cells to process; each must have an ``index`` attribute.
    n_jobs : int, optional
        Number of jobs, -1 or None for all cores.
    args : tuple, optional
        Read-only arguments passed to every call after the cell.
    use_parallel : bool, optional
        If False, run in the calling process.
    prefer : str, optional
        'processes' or 'threads', by default 'processes'.
    progress : bool, optional
        Whether to show a progress bar, by default True.

    Returns
    -------
    List[CellResult]
        One result per cell sorted by cell index. An exception raised for
        a cell is recorded as a failed result and does not stop the others.
    """
    if not cells:
        return []

    n_workers = resolve_n_jobs(n_jobs, len(cells)) if use_parallel else 1

    if n_workers == 1:
        logger.info(f"Running {len(cells)} cells sequentially")
        results = [
            _guarded(func, cell, *args)
            for cell in tqdm(cells, desc="Tiling", disable=not progress)
        ]
    else:
        logger.info(f"Running {len(cells)} cells in parallel with {n_workers} jobs")
        parallel = Parallel(n_jobs=n_workers, prefer=prefer, return_as="generator_unordered")
        outputs = parallel(delayed(_guarded)(func, cell, *args) for cell in cells)
        results = list(tqdm(outputs, total=len(cells), desc="Tiling", disable=not progress))

    return sorted(results, key=lambda result: result.index)
