"""Insight services."""
