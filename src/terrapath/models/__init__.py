"""
Data models for terrapath.
"""

from terrapath.models.settings import PathfinderSettings

__all__ = [
    "PathfinderSettings",
]
