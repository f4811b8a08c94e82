"""Emap Server — local project and asset backend for the projection UI."""

__version__ = "0.4.0"
