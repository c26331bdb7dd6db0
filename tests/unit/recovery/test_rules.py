"""Tests for the ordered failure categorization rules."""

from __future__ import annotations

from redline.models.validation import ErrorKind, ParseErrorCategory, Severity
from redline.recovery.rules import CATEGORY_RULES, UNKNOWN_CATEGORY, CategoryRule, categorize


def test_rules_are_checked_in_order():
    # Empty input also lacks braces; the earlier rule wins.
    assert categorize("   ").details == "Empty or whitespace-only response"


def test_missing_explanation_is_a_warning():
    category = categorize('{"corrected": "Hi." broken}')
    assert category.kind is ErrorKind.MISSING_FIELD
    assert category.field == "explanation"
    assert category.severity is Severity.WARNING


def test_unknown_when_no_rule_applies():
    assert categorize('{"corrected": "x", "explanation": "y" oops}') == UNKNOWN_CATEGORY


def test_custom_rules_replace_defaults():
    shouting = CategoryRule(
        name="shouting",
        applies=str.isupper,
        category=ParseErrorCategory(kind=ErrorKind.MALFORMED, severity=Severity.INFO, details="caps"),
    )
    assert categorize("NO JSON HERE", (shouting, *CATEGORY_RULES)).details == "caps"
