"""Questions and their base examples."""
