"""Infrastructure wiring."""
