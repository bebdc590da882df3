"""Dependency-aware task plans kept consistent across store, cache and memory mirror."""

__version__ = "0.1.0"
