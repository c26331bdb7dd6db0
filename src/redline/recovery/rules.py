"""Ordered diagnosis rules for responses no strategy could recover."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from redline.models.validation import ErrorKind, ParseErrorCategory, Severity

_CORRECTED_VALUE = re.compile(r"""["']?corrected(?:_text|Text)?["']?\s*:\s*([^,}]+)""")


@dataclass(frozen=True)
class CategoryRule:
    """When ``applies(raw)`` holds, ``category`` describes the failure."""

    name: str
    applies: Callable[[str], bool]
    category: ParseErrorCategory


def _is_empty(raw: str) -> bool:
    return not raw.strip()


def _lacks_braces(raw: str) -> bool:
    return "{" not in raw or "}" not in raw


def _lacks_corrected_keyword(raw: str) -> bool:
    # "corrected" is a prefix of the corrected_text / correctedText variants.
    return "corrected" not in raw


def _lacks_explanation_keyword(raw: str) -> bool:
    return "explanation" not in raw


def _corrected_value_unquoted(raw: str) -> bool:
    match = _CORRECTED_VALUE.search(raw)
    if match is None:
        return False
    value = match.group(1)
    return '"' not in value and "'" not in value


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        name="empty",
        applies=_is_empty,
        category=ParseErrorCategory(
            kind=ErrorKind.MALFORMED,
            severity=Severity.CRITICAL,
            details="Empty or whitespace-only response",
        ),
    ),
    CategoryRule(
        name="no_braces",
        applies=_lacks_braces,
        category=ParseErrorCategory(
            kind=ErrorKind.MALFORMED,
            severity=Severity.CRITICAL,
            details="Response does not contain JSON object braces",
        ),
    ),
    CategoryRule(
        name="no_corrected_field",
        applies=_lacks_corrected_keyword,
        category=ParseErrorCategory(
            kind=ErrorKind.MISSING_FIELD,
            severity=Severity.CRITICAL,
            field="corrected",
            details="Response missing corrected field (and variations)",
        ),
    ),
    CategoryRule(
        name="no_explanation_field",
        applies=_lacks_explanation_keyword,
        category=ParseErrorCategory(
            kind=ErrorKind.MISSING_FIELD,
            severity=Severity.WARNING,
            field="explanation",
            details="Response missing explanation field",
        ),
    ),
    CategoryRule(
        name="unquoted_corrected_value",
        applies=_corrected_value_unquoted,
        category=ParseErrorCategory(
            kind=ErrorKind.INVALID_TYPE,
            severity=Severity.WARNING,
            field="corrected",
            details="Corrected field value not quoted as string",
        ),
    ),
)

UNKNOWN_CATEGORY = ParseErrorCategory(
    kind=ErrorKind.UNKNOWN,
    severity=Severity.WARNING,
    details="Unable to parse JSON response - unknown error",
)


def categorize(raw: str, rules: tuple[CategoryRule, ...] = CATEGORY_RULES) -> ParseErrorCategory:
    """Return the category of the first matching rule, else UNKNOWN."""
    for rule in rules:
        if rule.applies(raw):
            return rule.category
    return UNKNOWN_CATEGORY
