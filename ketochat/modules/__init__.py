"""Infrastructure-facing modules: persistence, configuration, inference."""
