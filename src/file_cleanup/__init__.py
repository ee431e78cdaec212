"""File retention policy enforcement."""

__version__ = "1.0.0"
