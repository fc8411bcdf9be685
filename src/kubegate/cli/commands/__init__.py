"""Gateway CLI commands."""
