"""Face crop geometry and image normalization."""
