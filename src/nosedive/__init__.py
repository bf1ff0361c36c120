"""Nosedive: reputation scoring and abuse control for a social posting service."""

__version__ = "0.1.0"
