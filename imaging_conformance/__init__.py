"""Imaging Conformance: trial measurement conformance checking."""

__version__ = "0.1.0"
