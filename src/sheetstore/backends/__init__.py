"""Grid Backend implementations: in-memory, and the quota-throttling wrapper."""
