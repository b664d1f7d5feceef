"""
Prohibited-language rule table.

Rules are plain data so the taxonomy can grow without touching the
scanning engine. Keyword rules match case-insensitively as substrings;
pattern rules are case-insensitive regular expressions searched over the
whole text.
"""

import re
from dataclasses import dataclass, field
from typing import List, Pattern, Optional

KEYWORD = "keyword"
PATTERN = "pattern"

DISCIPLINARY = "disciplinary"
RANKING = "ranking"
GRADING = "grading"

CATEGORY_MESSAGES = {
    DISCIPLINARY: "This system cannot recommend disciplinary action against employees.",
    RANKING: "This system does not rank or compare employees competitively.",
    GRADING: "This system does not grade or score employees.",
}


@dataclass(frozen=True)
class PolicyRule:
    kind: str
    value: str
    category: str
    message: str = ""
    _compiled: Optional[Pattern] = field(default=None, compare=False, repr=False)

    def compiled(self) -> Pattern:
        if self._compiled is None:
            source = re.escape(self.value) if self.kind == KEYWORD else self.value
            object.__setattr__(self, "_compiled", re.compile(source, re.IGNORECASE))
        return self._compiled


def _keywords(category: str, words: List[str]) -> List[PolicyRule]:
    return [
        PolicyRule(KEYWORD, word, category, CATEGORY_MESSAGES[category])
        for word in words
    ]


def _patterns(category: str, sources: List[str]) -> List[PolicyRule]:
    return [
        PolicyRule(PATTERN, source, category, CATEGORY_MESSAGES[category])
        for source in sources
    ]


DEFAULT_RULES: List[PolicyRule] = [
    *_keywords(DISCIPLINARY, [
        "discipline",
        "punish",
        "terminate",
        "fire",
        "demote",
        "penalize",
        "sanction",
        "reprimand",
        "write-up",
        "write up",
        "performance improvement plan",
        "pip",
    ]),
    *_keywords(RANKING, [
        "rank employees",
        "rank workers",
        "worst performer",
        "best performer",
        "bottom 10%",
        "top 10%",
        "compare employees",
        "employee rankings",
        "stack rank",
    ]),
    *_keywords(GRADING, [
        "grade employees",
        "score employees",
        "performance score",
    ]),
    *_patterns(RANKING, [
        r"rank.*employees?",
        r"worst.*performer",
        r"best.*performer",
        r"top\s*\d+%?",
        r"bottom\s*\d+%?",
        r"compare.*employees?",
        r"leaderboard",
    ]),
    *_patterns(GRADING, [
        r"grade.*employees?",
        r"score.*employees?",
    ]),
]
