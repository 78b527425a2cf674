"""Integration Profiler - scaffold and publish cluster integration scripts."""

__version__ = "0.3.0"
