"""ws: workspace mission control."""

__version__ = "0.1.0"
