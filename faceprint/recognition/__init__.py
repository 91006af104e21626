"""Embedding extraction, signature matching and identity storage."""
