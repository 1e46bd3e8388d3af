#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for grid generation.
"""
import unittest

from rasterio.transform import from_origin

from raster_tiles.core.io import RasterReference
from raster_tiles.tiling.grid import cells_to_frame, generate_grid, grid_from_reference


class TestGenerateGrid(unittest.TestCase):
    """Grid layout, numbering and edge clipping."""

    def setUp(self):
        # 2048 x 2048 pixels of 0.5 map units
        self.bounds = (1000.0, 2000.0, 2024.0, 3024.0)
        self.res = (0.5, 0.5)

    def test_full_grid_count_and_indices(self):
        cells = generate_grid(self.bounds, self.res, 512)
        self.assertEqual(len(cells), 16)
        self.assertEqual([cell.index for cell in cells], list(range(1, 17)))
        for cell in cells:
            self.assertEqual((cell.width, cell.height), (512, 512))

    def test_row_major_order_from_top_left(self):
        cells = generate_grid(self.bounds, self.res, 512)
        first, second, fifth = cells[0], cells[1], cells[4]

        self.assertEqual(first.bounds, (1000.0, 2768.0, 1256.0, 3024.0))
        # Next index moves right along the top row
        self.assertEqual(second.bounds[0], first.bounds[2])
        self.assertEqual(second.bounds[3], first.bounds[3])
        # Index 5 starts the second row, directly below index 1
        self.assertEqual(fifth.bounds[0], first.bounds[0])
        self.assertEqual(fifth.bounds[3], first.bounds[1])
        self.assertEqual((fifth.col_off, fifth.row_off), (0, 512))

    def test_deterministic(self):
        first = generate_grid(self.bounds, self.res, 512)
        second = generate_grid(self.bounds, self.res, 512)
        self.assertEqual(first, second)

    def test_edge_cells_are_clipped(self):
        # 100 x 70 pixels, 32 px cells -> 4 columns, 3 rows
        bounds = (0.0, 0.0, 100.0, 70.0)
        cells = generate_grid(bounds, (1.0, 1.0), 32)
        self.assertEqual(len(cells), 12)

        last_in_first_row = cells[3]
        self.assertEqual((last_in_first_row.width, last_in_first_row.height), (4, 32))
        self.assertEqual(last_in_first_row.bounds[2], 100.0)

        bottom_right = cells[-1]
        self.assertEqual((bottom_right.width, bottom_right.height), (4, 6))
        self.assertEqual(bottom_right.bounds, (96.0, 0.0, 100.0, 6.0))

        total_area = sum(cell.geometry.area for cell in cells)
        self.assertAlmostEqual(total_area, 100.0 * 70.0)

    def test_raster_smaller_than_one_cell(self):
        cells = generate_grid((0.0, 0.0, 10.0, 5.0), (1.0, 1.0), 512)
        self.assertEqual(len(cells), 1)
        self.assertEqual((cells[0].width, cells[0].height), (10, 5))
        self.assertEqual(cells[0].bounds, (0.0, 0.0, 10.0, 5.0))

    def test_invalid_tile_size(self):
        for tile_size in (0, -4, 2.5, True):
            with self.assertRaises(ValueError):
                generate_grid(self.bounds, self.res, tile_size)

    def test_grid_from_reference(self):
        reference = RasterReference(
            path="unused.tif",
            crs="EPSG:32633",
            transform=from_origin(1000.0, 3024.0, 0.5, 0.5),
            width=2048,
            height=2048,
            count=3,
            dtypes=("uint8",) * 3,
            nodata=None,
            driver="GTiff",
        )
        self.assertEqual(
            grid_from_reference(reference, 512),
            generate_grid(self.bounds, self.res, 512),
        )

    def test_cells_to_frame(self):
        cells = generate_grid(self.bounds, self.res, 1024)
        frame = cells_to_frame(cells, crs="EPSG:32633")
        self.assertEqual(frame["cell_index"].tolist(), [1, 2, 3, 4])
        self.assertEqual(frame.crs.to_epsg(), 32633)
        self.assertTrue(frame.geometry.iloc[0].equals(cells[0].geometry))


if __name__ == '__main__':
    unittest.main()
