"""User services."""
