"""Command-line entry points for faceprint."""
