"""Command-line interface for certsync."""
