"""
Command-line tools for running quantity takeoffs.

This module provides commands for:
- Running a takeoff over a YAML network and printing the pivots
- Listing connectivity group labels
- Resetting a stored identifier map
"""

from .takeoff_cli import cli

__all__ = ["cli"]
