"""Find and fetch releases for the episodes of tracked shows."""

__version__ = "0.1.0"
