"""Command-line interface groups."""
