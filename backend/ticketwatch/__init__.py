"""Parking ticket discovery for the city citation portal."""

__version__ = "0.1.0"
