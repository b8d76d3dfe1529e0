"""Persistence adapters for pattern resolution."""
