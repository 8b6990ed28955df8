"""Utility helpers shared across the panoview package."""
