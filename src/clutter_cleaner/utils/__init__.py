"""Utility functions for configuration, logging, and device telemetry."""

from clutter_cleaner.utils.config import Config
from clutter_cleaner.utils.logger import setup_logger

__all__ = ["Config", "setup_logger"]
