"""Translation API access."""
