#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core functionality for raster tiling.

This module contains the core components for raster and vector data handling,
configuration management, and logging setup.
"""
