"""REST API for the event store."""
