"""Deviation services."""
