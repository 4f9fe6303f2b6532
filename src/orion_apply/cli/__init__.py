"""Command-line interface for orion-apply."""
