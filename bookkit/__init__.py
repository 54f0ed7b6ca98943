"""Toolkit for mdBook preprocessors, diagnostics, progress reporting and book postprocessing."""

__version__ = "0.1.0"