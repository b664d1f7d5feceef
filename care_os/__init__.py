"""
CARE OS

Wellbeing guardrails and deviation detection: check-ins, advisory-only
insights, and private manager prompts when a team member's check-ins shift.
"""
