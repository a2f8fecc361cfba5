"""Read-only result reporting."""
