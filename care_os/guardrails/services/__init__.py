"""Guardrail services."""
