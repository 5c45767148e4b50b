"""Shared helpers (logging setup, image encoding)."""
