"""Assessment Agent API gateway package."""
