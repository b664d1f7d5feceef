"""
Content policy filter.

Scans text for disciplinary, ranking and grading language before it can
reach a manager. Used in two places with different failure policy:

- blocking mode (``enforce``) on inbound requests and on every would-be AI
  output: any violation raises GuardrailViolationError.
- reporting mode (``filter_payload``) on JSON payloads about to be sent in
  an HTTP response: violations replace the payload with a fixed
  "Content Violation" shape instead of raising.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from common.utils.exceptions import GuardrailViolationError
from care_os.guardrails.models import PolicyViolation, ScanResult
from care_os.guardrails.rules import DEFAULT_RULES, PolicyRule

logger = logging.getLogger(__name__)


class PolicyFilter:
    """
    Applies the prohibited-language rule table to text.
    """

    LOG_PREVIEW_CHARS = 100

    CONTENT_VIOLATION_ERROR = "Content Violation"
    CONTENT_VIOLATION_MESSAGE = "Response blocked by ethical guardrails"
    CONTENT_VIOLATION_DETAILS = "Content contains prohibited disciplinary language"

    def __init__(self, rules: Optional[List[PolicyRule]] = None):
        """
        Initialize PolicyFilter.

        Args:
            rules: Rule table to apply (defaults to DEFAULT_RULES)
        """
        self._rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def scan(self, text: str) -> ScanResult:
        """
        Scan text against every rule.

        Collects all violations rather than stopping at the first one.

        Args:
            text: Text to scan

        Returns:
            ScanResult with isClean flag and violations list
        """
        violations = []

        for rule in self._rules:
            match = rule.compiled().search(text)
            if match:
                violations.append(PolicyViolation(
                    pattern=rule.value,
                    matchedText=match.group(0),
                    category=rule.category,
                ))

        return ScanResult(isClean=len(violations) == 0, violations=violations)

    def scan_many(self, texts: Iterable[str]) -> ScanResult:
        """Scan several strings, merging their violations into one result."""
        violations = []
        for text in texts:
            violations.extend(self.scan(text).violations)
        return ScanResult(isClean=len(violations) == 0, violations=violations)

    def enforce(self, text: str, source: str = "request") -> None:
        """
        Blocking mode: raise on any violation.

        Args:
            text: Text to check
            source: Where the text came from (for logs only)

        Raises:
            GuardrailViolationError: Text contains prohibited language
        """
        result = self.scan(text)
        if result.isClean:
            return

        logger.warning(
            f"Guardrail blocked {source}: categories={result.categories} "
            f"preview={text[:self.LOG_PREVIEW_CHARS]!r}"
        )
        raise GuardrailViolationError(categories=result.categories)

    def enforce_all(self, texts: Iterable[str], source: str = "output") -> None:
        """
        Blocking mode over several strings, each checked individually.

        Raises:
            GuardrailViolationError: Any string contains prohibited language
        """
        for text in texts:
            self.enforce(text, source=source)

    def filter_payload(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Reporting mode: degrade a violating response payload.

        Every string value is scanned on its own. Keys are never scanned and
        no rule can match across two fields.

        Args:
            payload: JSON-serializable response body

        Returns:
            (payload to send, is_clean). When not clean the payload is the
            fixed Content Violation shape naming only policy categories.
        """
        result = self.scan_many(self._string_values(payload))

        if result.isClean:
            return payload, True

        logger.error(f"Ethical guardrail violation in response payload: {result.categories}")
        return {
            "error": self.CONTENT_VIOLATION_ERROR,
            "message": self.CONTENT_VIOLATION_MESSAGE,
            "details": self.CONTENT_VIOLATION_DETAILS,
            "categories": result.categories,
        }, False

    @classmethod
    def _string_values(cls, value: Any) -> Iterator[str]:
        """Yield every string leaf of a JSON-like structure, skipping keys."""
        if isinstance(value, str):
            yield value
        elif isinstance(value, dict):
            for item in value.values():
                yield from cls._string_values(item)
        elif isinstance(value, (list, tuple, set)):
            for item in value:
                yield from cls._string_values(item)
        elif value is not None and not isinstance(value, (bool, int, float)):
            # datetimes, ObjectIds and enums reach the client as strings
            yield str(value)
