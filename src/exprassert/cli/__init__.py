"""Command line interface for exprassert."""
