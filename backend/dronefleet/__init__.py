"""
Drone fleet simulation and flight-risk backend.
"""

from .engine import FleetEngine, build_default_engine, get_engine

__all__ = ["FleetEngine", "build_default_engine", "get_engine"]
