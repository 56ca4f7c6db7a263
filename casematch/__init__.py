"""Duplicate detection for missing and at-risk children case reports."""

__version__ = "0.1.0"
