#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility modules for raster tiling.

This package contains utility modules for run reports, metadata handling,
and general-purpose functions such as the per-cell parallel executor.
"""
