"""Cascade: capture web content into projects and export them as canvases."""

__version__ = "0.3.0"
