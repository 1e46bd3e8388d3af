#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging configuration for the raster tiling pipeline.

This module provides centralized configuration for the logging system
used throughout the application.
"""
import logging
import os
from typing import Optional
from raster_tiles.core.config import LOGGING_CONFIG

LOGGER_NAME = "raster_tiles"


def setup_logging(log_level: Optional[str] = None,
                  log_file: Optional[str] = None,
                  module_name: str = LOGGER_NAME) -> logging.Logger:
    """
    Configure and return a logger with the specified settings.

    Parameters
    ----------
    log_level : str, optional
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        If None, uses the level from config.py.
    log_file : str, optional
        Path to log file. If None, uses the path from config.py when
        file logging is enabled there.
    module_name : str, optional
        Name of the logger, by default "raster_tiles".

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(module_name)

    level = log_level or LOGGING_CONFIG.get("level", "INFO")
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logger.setLevel(numeric_level)

    # If logger is already configured, only the level and file may change
    if logger.handlers and log_file is None:
        return logger

    log_format = LOGGING_CONFIG.get("log_format",
                                   "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    formatter = logging.Formatter(log_format)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    log_file_path = log_file
    if log_file_path is None and LOGGING_CONFIG.get("log_to_file", False):
        log_file_path = LOGGING_CONFIG.get("log_file")

    if log_file_path:
        log_dir = os.path.dirname(str(log_file_path))
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at level: {level}")
    return logger


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Parameters
    ----------
    module_name : str
        Name of the module, typically __name__.

    Returns
    -------
    logging.Logger
        Logger that propagates to the package logger.
    """
    if module_name.startswith(LOGGER_NAME):
        return logging.getLogger(module_name)
    return logging.getLogger(f"{LOGGER_NAME}.{module_name}")


# Initialize the package logger
root_logger = setup_logging()
