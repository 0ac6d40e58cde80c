"""Command-line interface for the redis operator."""
