"""Command line interface for grid carbon-intensity estimates."""
