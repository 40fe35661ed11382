"""
Market Snapshot CLI

Command-line interface for live and offline market structure snapshots
and request preset validation.
"""

from .cli import app

__all__ = ["app"]
