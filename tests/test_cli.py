#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the command line interface.
"""
import os
import tempfile
import unittest

import pandas as pd
import yaml
from shapely.geometry import Polygon

from raster_tiles.cli import EXIT_INPUT_ERROR, EXIT_OK, main
from raster_tiles.utils.metadata import load_report
from synthetic_data import (
    create_synthetic_raster, make_annotations, make_aoi, pixel_box, save_synthetic_raster
)


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        root = self.tmpdir.name
        self.raster = save_synthetic_raster(os.path.join(root, "ortho.tif"), create_synthetic_raster())
        self.annotations = os.path.join(root, "annotations.gpkg")
        make_annotations(
            [pixel_box(32, 16, 16, 16), pixel_box(0, 0, 8, 8)], ["Oak", "Birch"]
        ).to_file(self.annotations, driver="GPKG")
        self.aoi = os.path.join(root, "aoi.gpkg")
        make_aoi([pixel_box(1, 1, 30, 30)], ["active"]).to_file(self.aoi, driver="GPKG")
        self.output = os.path.join(root, "out")

    def tearDown(self):
        self.tmpdir.cleanup()

    def run_args(self, *extra):
        return ["run", "-r", self.raster, "-a", self.annotations, "-o", self.output,
                "-t", "16", "--no-parallel", "--no-progress", *extra]

    def test_catalog_command(self):
        output = os.path.join(self.tmpdir.name, "catalog.csv")
        self.assertEqual(main(["catalog", "-a", self.annotations, "-o", output]), EXIT_OK)
        catalog = pd.read_csv(output)
        self.assertEqual(catalog["label"].tolist(), ["Birch", "Oak"])
        self.assertEqual(catalog["id"].tolist(), [1, 2])

    def test_catalog_command_matches_run(self):
        # The "Ash" row has an empty geometry and is dropped by both commands
        annotations = os.path.join(self.tmpdir.name, "with_empty.gpkg")
        make_annotations(
            [pixel_box(0, 0, 8, 8), Polygon(), pixel_box(16, 16, 8, 8)], ["Oak", "Ash", "Birch"]
        ).to_file(annotations, driver="GPKG")
        output = os.path.join(self.tmpdir.name, "catalog.csv")

        self.assertEqual(main(["catalog", "-a", annotations, "-o", output]), EXIT_OK)
        self.assertEqual(main(["run", "-r", self.raster, "-a", annotations, "-o", self.output,
                               "-t", "16", "--no-parallel", "--no-progress"]), EXIT_OK)

        standalone = pd.read_csv(output)
        from_run = pd.read_csv(os.path.join(self.output, "class_catalog.csv"))
        self.assertEqual(standalone["label"].tolist(), ["Birch", "Oak"])
        pd.testing.assert_frame_equal(standalone, from_run)

    def test_grid_command(self):
        output = os.path.join(self.tmpdir.name, "grid.csv")
        self.assertEqual(main(["grid", "-r", self.raster, "-o", output, "-t", "16"]), EXIT_OK)
        self.assertEqual(len(pd.read_csv(output)), 16)

        self.assertEqual(
            main(["grid", "-r", self.raster, "--aoi", self.aoi, "-o", output, "-t", "16"]), EXIT_OK
        )
        self.assertEqual(pd.read_csv(output)["cell_index"].tolist(), [1, 2, 5, 6])

    def test_run_command(self):
        self.assertEqual(main(self.run_args("--aoi", self.aoi, "--bands", "3,1")), EXIT_OK)
        self.assertEqual(sorted(os.listdir(os.path.join(self.output, "tiles"))),
                         ["tile_000001.tif", "tile_000002.tif", "tile_000005.tif", "tile_000006.tif"])
        report = load_report(os.path.join(self.output, "run_report.json"))
        self.assertEqual(report["processed"], [1, 2, 5, 6])
        self.assertEqual(report["config"]["tiles"]["bands"], [3, 1])

    def test_run_selected_indices(self):
        self.assertEqual(main(self.run_args("--indices", "7,8")), EXIT_OK)
        self.assertEqual(sorted(os.listdir(os.path.join(self.output, "masks"))),
                         ["tile_000007_M.tif", "tile_000008_M.tif"])

    def test_config_file(self):
        config = os.path.join(self.tmpdir.name, "config.yaml")
        with open(config, "w") as f:
            yaml.safe_dump({"export": {"report_format": "yaml"}}, f)
        self.assertEqual(main(self.run_args("--config", config)), EXIT_OK)
        report = load_report(os.path.join(self.output, "run_report.yaml"))
        self.assertEqual(len(report["processed"]), 16)

    def test_input_errors(self):
        missing = os.path.join(self.tmpdir.name, "missing.tif")
        self.assertEqual(
            main(["run", "-r", missing, "-a", self.annotations, "-o", self.output]), EXIT_INPUT_ERROR
        )
        self.assertEqual(main(self.run_args("--bands", "1,9")), EXIT_INPUT_ERROR)
        self.assertEqual(main(self.run_args("--compress", "jpeg")), EXIT_INPUT_ERROR)
        self.assertFalse(os.path.exists(os.path.join(self.output, "tiles")))


if __name__ == '__main__':
    unittest.main()
