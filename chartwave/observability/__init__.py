"""Logging setup shared by every chartwave component."""
