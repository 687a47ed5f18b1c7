"""Face photo validation and visitor matching service."""

__version__ = "0.1.0"
