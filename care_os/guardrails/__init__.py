"""
Ethical Guardrails

Content policy filter, advisory envelope and audit trail applied to every
AI-derived output.
"""

from care_os.guardrails.models import AuditLogEntry, PolicyViolation, ScanResult
from care_os.guardrails.rules import DEFAULT_RULES, PolicyRule

__all__ = [
    "AuditLogEntry",
    "PolicyViolation",
    "ScanResult",
    "DEFAULT_RULES",
    "PolicyRule",
]
