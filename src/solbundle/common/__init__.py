"""Shared helpers: logging and warnings."""
