"""OneUp progress tracking and cloud synchronisation."""

__version__ = "0.4.0"
