"""
CARE OS Pipelines.

Business logic orchestration functions.
"""
