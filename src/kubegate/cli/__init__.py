"""Command line interface for kubegate."""
