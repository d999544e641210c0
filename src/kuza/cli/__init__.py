"""Command-line interface for Kuza vaults."""
