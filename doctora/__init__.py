"""Client-side booking workflow for the doctora appointment platform."""

__version__ = "0.1.0"
