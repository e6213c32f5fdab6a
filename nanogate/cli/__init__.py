"""CLI module for nanogate."""
