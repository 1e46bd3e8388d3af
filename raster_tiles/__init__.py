#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster Tiles Package.

Cuts a large georeferenced multi-band raster and its polygon annotations into
fixed-size, pixel-aligned image tiles and class-label masks for training
segmentation models.
"""

__version__ = "0.1.0"
__author__ = "Elena Project Team"
__email__ = "user@example.com"
