"""Typed values passed between the scheduling pipeline stages."""
