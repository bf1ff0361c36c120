"""HTTP API for the Nosedive service."""
