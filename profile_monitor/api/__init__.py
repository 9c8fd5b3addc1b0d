"""Health API."""
