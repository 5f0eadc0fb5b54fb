"""Resolve the dependencies of a thin application archive and launch it."""

__version__ = "0.1.0"
