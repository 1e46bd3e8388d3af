#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Run reports and cell index tables for the raster tiling pipeline.

The report lists which cells were processed, skipped or failed (with causes)
so an operator can re-run selected cells.
"""
import os
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
import yaml

from raster_tiles.core.logging_config import get_module_logger
from raster_tiles.utils.utils import (
    CellResult, STATUS_FAILED, STATUS_PROCESSED, STATUS_SKIPPED
)

# Initialize logger
logger = get_module_logger(__name__)


@dataclass
class RunReport:
    """Summary of one tiling run."""
    raster: str
    total_cells: int
    selected_cells: int
    results: List[CellResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    config: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def _with_status(self, status: str) -> List[CellResult]:
        return [result for result in self.results if result.status == status]

    @property
    def processed(self) -> List[int]:
        return [result.index for result in self._with_status(STATUS_PROCESSED)]

    @property
    def skipped(self) -> List[CellResult]:
        return self._with_status(STATUS_SKIPPED)

    @property
    def failed(self) -> List[CellResult]:
        return self._with_status(STATUS_FAILED)

    @property
    def cells_with_omissions(self) -> List[CellResult]:
        return [result for result in self.results if result.omitted_polygons]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "raster": self.raster,
            "total_cells": self.total_cells,
            "selected_cells": self.selected_cells,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "processed": self.processed,
            "skipped": [{"index": r.index, "reason": r.reason} for r in self.skipped],
            "failed": [{"index": r.index, "reason": r.reason} for r in self.failed],
            "omitted_polygons": [
                {"index": r.index, "count": r.omitted_polygons} for r in self.cells_with_omissions
            ],
            "config": self.config,
        }


def save_report(
    report: RunReport,
    output_path: Union[str, Path],
    format: str = "json"
) -> None:
    """
    Save a run report.

    Parameters
    ----------
    report : RunReport
        Report to save.
    output_path : str or Path
        Path to the output file.
    format : str, optional
        Output format, by default 'json'.
        Options: 'json', 'yaml'
    """
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    metadata = report.to_dict()

    if format.lower() == "json":
        with open(output_path, "w") as f:
            json.dump(metadata, f, indent=2)
    elif format.lower() == "yaml":
        with open(output_path, "w") as f:
            yaml.safe_dump(metadata, f, default_flow_style=False, sort_keys=False)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Saved run report to {output_path}")


def load_report(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a report written by :func:`save_report` (JSON or YAML)."""
    with open(path, "r") as f:
        if str(path).lower().endswith((".yaml", ".yml")):
            return yaml.safe_load(f)
        return json.load(f)


def failed_indices(report: Dict[str, Any]) -> List[int]:
    """Indices of the cells that failed in a loaded report."""
    return sorted(int(entry["index"]) for entry in report.get("failed", []))


def cells_table(
    cells_frame: pd.DataFrame,
    results: Optional[Sequence[CellResult]] = None
) -> pd.DataFrame:
    """
    Build the cell index table.

    Parameters
    ----------
    cells_frame : pd.DataFrame
        Cell rows as produced by ``cells_to_frame``.
    results : sequence of CellResult, optional
        Per-cell outcomes; adds status and output paths when given.

    Returns
    -------
    pd.DataFrame
        Plain table without geometry, one row per cell.
    """
    table = pd.DataFrame(cells_frame.drop(columns="geometry", errors="ignore"))
    if results is not None:
        by_index = {result.index: result for result in results}
        table["status"] = [by_index[i].status if i in by_index else None for i in table["cell_index"]]
        table["tile_path"] = [by_index[i].tile_path if i in by_index else None for i in table["cell_index"]]
        table["mask_path"] = [by_index[i].mask_path if i in by_index else None for i in table["cell_index"]]
    return table.reset_index(drop=True)


def log_report_summary(report: RunReport) -> None:
    """Log the end-of-run summary."""
    logger.info(
        f"Run finished in {report.elapsed_seconds:.1f}s: {report.selected_cells} of "
        f"{report.total_cells} cells selected, {len(report.processed)} processed, "
        f"{len(report.skipped)} skipped, {len(report.failed)} failed"
    )
    if report.cells_with_omissions:
        total = sum(r.omitted_polygons for r in report.cells_with_omissions)
        logger.warning(
            f"{total} unlabeled polygons omitted across {len(report.cells_with_omissions)} cells"
        )
    for result in report.skipped:
        logger.info(f"Cell {result.index} skipped: {result.reason}")
    for result in report.failed:
        logger.error(f"Cell {result.index} failed: {result.reason}")
