"""Command-line interface for play-bundle."""
