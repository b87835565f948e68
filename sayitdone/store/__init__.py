"""Persistence helpers (settings) and the default task sink."""
