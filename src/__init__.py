# src/__init__.py - v1
"""taskdocs - progressive document cache and hydration engine for agent tasks."""

from taskdocs.version import __version__

__all__ = ["__version__"]
