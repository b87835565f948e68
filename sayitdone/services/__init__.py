"""Coordination, recognition, timing and text services."""
