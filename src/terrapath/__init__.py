"""
Terrapath - terrain-aware road routing.

This package searches for road routes across a height map, following the
terrain where it can and falling back to tunnels and bridges where the
slope and curvature limits allow them.
"""

__version__ = "0.1.0"
