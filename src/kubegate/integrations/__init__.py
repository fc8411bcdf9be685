"""Gateway integrations."""
