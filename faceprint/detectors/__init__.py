"""Adapters for face detector outputs."""
