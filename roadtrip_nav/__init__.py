"""Road-trip route orchestration and navigation."""

__version__ = "0.1.0"
