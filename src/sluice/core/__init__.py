"""Core infrastructure: logging, settings loading, attribute templates."""
