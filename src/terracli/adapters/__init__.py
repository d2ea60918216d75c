"""HTTP adapters for the remote services."""
