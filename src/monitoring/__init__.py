"""Event log, event bus and monitoring consumers."""
