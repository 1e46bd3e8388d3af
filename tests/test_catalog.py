#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the class catalog.
"""
import os
import tempfile
import unittest

import numpy as np
import pandas as pd
from shapely.geometry import box

from raster_tiles.core.io import InputDataError
from raster_tiles.tiling.catalog import ClassCatalog, build_class_catalog, resolve_class_ids
from synthetic_data import make_annotations


class TestBuildClassCatalog(unittest.TestCase):
    """Id assignment from label values."""

    def test_alphabetical_ids(self):
        catalog = build_class_catalog(["Oak", "Maple", "Birch"])
        self.assertEqual(catalog.mapping, {"Birch": 1, "Maple": 2, "Oak": 3})

    def test_stable_across_input_order(self):
        labels = ["Oak", "Maple", "Birch", "Oak", "Maple"]
        first = build_class_catalog(labels)
        second = build_class_catalog(list(reversed(labels)))
        self.assertEqual(first, second)

    def test_null_labels_get_no_id(self):
        catalog = build_class_catalog(["Oak", None, np.nan, pd.NA, "Birch", "Oak"])
        self.assertEqual(catalog.mapping, {"Birch": 1, "Oak": 2})
        self.assertIsNone(catalog.id_for(None))
        self.assertIsNone(catalog.id_for(np.nan))
        self.assertIsNone(catalog.id_for("Willow"))

    def test_empty_catalog(self):
        catalog = build_class_catalog([None, None])
        self.assertEqual(len(catalog), 0)

    def test_background_collision(self):
        with self.assertRaises(InputDataError):
            build_class_catalog(["a", "b", "c"], background_id=2)
        catalog = build_class_catalog(["a", "b", "c"], background_id=255)
        self.assertEqual(catalog.mapping["c"], 3)

    def test_too_many_classes(self):
        with self.assertRaises(InputDataError):
            build_class_catalog([f"class_{i:03d}" for i in range(256)])

    def test_save_and_load(self):
        catalog = build_class_catalog(["Oak", "Maple", "Birch", "NA"])
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "class_catalog.csv")
            catalog.save(path)

            table = pd.read_csv(path, keep_default_na=False)
            self.assertEqual(list(table.columns), ["label", "id"])
            self.assertEqual(table["label"].tolist(), ["Birch", "Maple", "NA", "Oak"])
            self.assertEqual(table["id"].tolist(), [1, 2, 3, 4])

            self.assertEqual(ClassCatalog.load(path), catalog)


class TestResolveClassIds(unittest.TestCase):
    """Attaching class ids to annotation polygons."""

    def test_resolve(self):
        geometries = [box(0, 0, 1, 1), box(1, 1, 2, 2), box(2, 2, 3, 3)]
        annotations = make_annotations(geometries, ["Oak", None, "Birch"])
        catalog = build_class_catalog(annotations["label"])

        resolved = resolve_class_ids(annotations, catalog)
        self.assertEqual(resolved["class_id"].iloc[0], 2)
        self.assertTrue(pd.isna(resolved["class_id"].iloc[1]))
        self.assertEqual(resolved["class_id"].iloc[2], 1)
        # Input is left untouched
        self.assertNotIn("class_id", annotations.columns)


if __name__ == '__main__':
    unittest.main()
