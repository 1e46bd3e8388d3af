#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Class catalog: a stable label -> integer id mapping.

Ids are 1..K assigned by ascending sort of the distinct non-null labels, so
the same annotation layer always yields the same catalog.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import geopandas as gpd
import pandas as pd

from raster_tiles.core.config import BACKGROUND_ID
from raster_tiles.core.io import InputDataError, export_table
from raster_tiles.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)

# Masks are written as uint8
MAX_CLASS_ID = 255


@dataclass(frozen=True)
class ClassCatalog:
    """Label to class id mapping with ids 1..K."""
    mapping: Dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.mapping)

    def __contains__(self, label) -> bool:
        return label in self.mapping

    @property
    def labels(self) -> List[str]:
        return sorted(self.mapping, key=self.mapping.get)

    def id_for(self, label) -> Optional[int]:
        """Return the class id of a label, or None for null and unknown labels."""
        if _is_null(label):
            return None
        return self.mapping.get(str(label))

    def to_frame(self) -> pd.DataFrame:
        """Return the catalog as a (label, id) table sorted by label."""
        labels = self.labels
        return pd.DataFrame(
            {"label": labels, "id": [self.mapping[label] for label in labels]}
        )

    def save(self, path: Union[str, Path]) -> None:
        export_table(self.to_frame(), path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ClassCatalog":
        """Read a catalog table written by :meth:`save`."""
        df = pd.read_csv(path, dtype={"label": str, "id": int}, keep_default_na=False)
        return cls({label: int(class_id) for label, class_id in zip(df["label"], df["id"])})


def _is_null(value) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value))


def build_class_catalog(
    labels: Iterable,
    background_id: int = BACKGROUND_ID
) -> ClassCatalog:
    """
    Build a catalog from annotation label values.

    Parameters
    ----------
    labels : iterable
        Label value of every annotation polygon; nulls are ignored.
    background_id : int, optional
        Id reserved for unlabeled pixels, by default 0.

    Returns
    -------
    ClassCatalog
        Distinct non-null labels sorted ascending with ids 1..K.

    Raises
    ------
    InputDataError
        If the ids would not fit in an 8-bit mask or would collide with the
        background id.
    """
    distinct = sorted({str(label) for label in labels if not _is_null(label)})
    n_classes = len(distinct)

    if n_classes > MAX_CLASS_ID:
        raise InputDataError(
            f"{n_classes} classes do not fit in an 8-bit mask (max {MAX_CLASS_ID})"
        )
    if 1 <= background_id <= n_classes:
        raise InputDataError(
            f"Background id {background_id} collides with class ids 1..{n_classes}"
        )

    catalog = ClassCatalog({label: i for i, label in enumerate(distinct, start=1)})
    logger.info(f"Class catalog with {n_classes} classes: {catalog.mapping}")
    return catalog


def resolve_class_ids(
    annotations: gpd.GeoDataFrame,
    catalog: ClassCatalog,
    label_field: str = "label"
) -> gpd.GeoDataFrame:
    """
    Attach a nullable ``class_id`` column to the annotations.

    Polygons whose label is null get a null class id and are never burned
    into a mask.
    """
    resolved = annotations.copy()
    ids = [catalog.id_for(label) for label in resolved[label_field]]
    resolved["class_id"] = pd.array(
        [pd.NA if i is None else i for i in ids], dtype="Int64"
    )

    n_unresolved = int(resolved["class_id"].isna().sum())
    if n_unresolved:
        logger.warning(
            f"{n_unresolved} annotation polygons have no label and will be omitted from masks"
        )
    return resolved
