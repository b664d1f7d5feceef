"""Check-in services."""
