"""Recruitment quota and permit lifecycle engine."""

__version__ = "1.0.0"
