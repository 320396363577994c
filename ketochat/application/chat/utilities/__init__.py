"""Chat utilities."""
