"""
Unified Typer CLI for the mapsimplify tool.

This module exports the main Typer application that provides the command-line
interface for topology-preserving polygon simplification.
"""

from .main import app

__all__ = ["app"]
