"""Command-line interface for PaceBot."""
