#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tiling stages for raster data.

This package contains the grid generator, class catalog builder, AOI filter,
tile extractor and mask rasterizer that turn one raster and its polygon
annotations into pixel-aligned tile/mask pairs.
"""
