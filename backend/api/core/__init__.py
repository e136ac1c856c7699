"""Settings, logging and request dependencies."""
