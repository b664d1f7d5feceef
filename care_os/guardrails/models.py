"""
Data types for the ethical guardrail layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field


@dataclass
class PolicyViolation:
    """A single rule hit."""
    pattern: str
    matchedText: str
    category: str


@dataclass
class ScanResult:
    """Result of scanning text against the policy rule table."""
    isClean: bool
    violations: List[PolicyViolation] = field(default_factory=list)

    @property
    def categories(self) -> List[str]:
        return sorted({v.category for v in self.violations})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogEntry(BaseModel):
    """Append-only record of an AI recommendation or sensitive access."""
    id: Optional[str] = None
    userId: Optional[str] = None
    action: str
    resource: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
