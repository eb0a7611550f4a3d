"""Workforce lifecycle engine for event venue staff."""

__version__ = "0.1.0"
