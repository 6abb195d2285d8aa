"""On-device duplicate and similar photo cleanup."""

__version__ = "0.1.0"
