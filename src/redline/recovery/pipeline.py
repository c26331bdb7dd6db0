"""Turn free-form model output into a validated correction payload.

Strategies run from least to most permissive and the first success wins:

1. DIRECT            the whole text is a JSON object with a corrected field
2. REPAIRED          fixed syntactic repairs, then as 1
3. CODE_BLOCK        first fenced block whose contents pass 2
4. BRACE_EXTRACTION  first ``{`` to last ``}``, through 2
5. FIELD_EXTRACTION  regex extraction of individual fields

When all of them fail, :mod:`redline.recovery.rules` diagnoses why.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from redline.models.validation import (
    ErrorKind,
    ParseErrorCategory,
    ParsedCorrection,
    RecoveryStrategy,
    Severity,
    ValidationOutcome,
)
from redline.recovery.rules import CATEGORY_RULES, CategoryRule, categorize

logger = logging.getLogger(__name__)

CORRECTED_KEYS = ("corrected", "corrected_text", "correctedText")
EXPLANATION_KEYS = ("explanation", "explanations", "explanation_text")

_JSON_STRING = re.compile(r'"(?:[^"\\]|\\.)*"', re.S)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BACKSLASH = re.compile(r'\\(["\\/bfnrt]|u[0-9a-fA-F]{4})|\\')
_MISSING_COMMA = re.compile(r'(?<!\\)"(\s+)"(?=[A-Za-z_])')
_FIELD_TYPOS = (
    ('"corrected_text"', '"corrected"'),
    ('"correctedText"', '"corrected"'),
    ('"explanations"', '"explanation"'),
    ('"explanation_text"', '"explanation"'),
)

_FENCED_BLOCK = re.compile(r"(```|~~~)[\w+-]*[ \t]*\r?\n?(.*?)\1", re.S)

_QUOTED_VALUE = r"""(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)')"""
_CORRECTED_FIELD = re.compile(
    r"""["']?\bcorrected(?:_text|Text)?["']?\s*:\s*""" + _QUOTED_VALUE, re.S
)
_EXPLANATION_LIST = re.compile(r"""["']?\bexplanation(?:s|_text)?["']?\s*:\s*\[(.*?)\]""", re.S)
_EXPLANATION_TEXT = re.compile(
    r"""["']?\bexplanation(?:s|_text)?["']?\s*:\s*""" + _QUOTED_VALUE, re.S
)
_QUOTED_ITEM = re.compile(_QUOTED_VALUE, re.S)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _normalize(data: dict[str, Any]) -> ParsedCorrection | None:
    corrected_key = next((k for k in CORRECTED_KEYS if k in data), None)
    if corrected_key is None:
        return None
    explanation_key = next((k for k in EXPLANATION_KEYS if k in data), None)
    extra = {
        k: v for k, v in data.items() if k not in CORRECTED_KEYS and k not in EXPLANATION_KEYS
    }
    return ParsedCorrection(
        corrected=data[corrected_key],
        explanation=data[explanation_key] if explanation_key else None,
        extra=extra,
    )


def _parse_structured(text: str) -> ParsedCorrection | None:
    text = text.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return _normalize(data)


def _escape_control_chars(match: re.Match[str]) -> str:
    inner = match.group(0)[1:-1]
    inner = inner.replace("\r\n", "\\n").replace("\n", "\\n").replace("\r", "\\n").replace("\t", "\\t")
    return f'"{inner}"'


def _escape_stray_backslash(match: re.Match[str]) -> str:
    return match.group(0) if match.group(1) else "\\\\"


def repair(text: str) -> str:
    """Apply the fixed sequence of syntactic repairs to ``text``."""
    fixed = _JSON_STRING.sub(_escape_control_chars, text)
    fixed = _TRAILING_COMMA.sub(r"\1", fixed)
    fixed = _BACKSLASH.sub(_escape_stray_backslash, fixed)
    for typo, canonical in _FIELD_TYPOS:
        fixed = fixed.replace(typo, canonical)
    return _MISSING_COMMA.sub(r'",\1"', fixed)


def _unescape(double_quoted: str | None, single_quoted: str | None) -> str:
    if double_quoted is not None:
        try:
            return json.loads(f'"{double_quoted}"')
        except ValueError:
            value = double_quoted
    else:
        value = (single_quoted or "").replace("\\'", "'")
    return value.replace('\\"', '"').replace("\\n", "\n").replace("\\t", "\t")


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def parse_direct(raw: str) -> ParsedCorrection | None:
    return _parse_structured(raw)


def parse_repaired(raw: str) -> ParsedCorrection | None:
    if not raw.strip():
        return None
    return _parse_structured(repair(raw.strip()))


def parse_code_block(raw: str) -> ParsedCorrection | None:
    for match in _FENCED_BLOCK.finditer(raw):
        parsed = parse_repaired(match.group(2))
        if parsed is not None:
            return parsed
    return None


def parse_brace_extraction(raw: str) -> ParsedCorrection | None:
    first = raw.find("{")
    last = raw.rfind("}")
    if first == -1 or last <= first:
        return None
    return parse_repaired(raw[first:last + 1])


def parse_fields(raw: str) -> ParsedCorrection | None:
    corrected_match = _CORRECTED_FIELD.search(raw)
    if corrected_match is None:
        return None
    corrected = _unescape(corrected_match.group(1), corrected_match.group(2))
    if not corrected:
        return None

    explanation: Any = None
    list_match = _EXPLANATION_LIST.search(raw)
    if list_match is not None:
        body = list_match.group(1)
        items = [_unescape(m.group(1), m.group(2)) for m in _QUOTED_ITEM.finditer(body)]
        if not items:
            items = [part.strip() for part in body.split(",")]
        explanation = [item for item in items if item]
    else:
        text_match = _EXPLANATION_TEXT.search(raw)
        if text_match is not None:
            explanation = _unescape(text_match.group(1), text_match.group(2))

    return ParsedCorrection(corrected=corrected, explanation=explanation)


Strategy = Callable[[str], ParsedCorrection | None]

STRATEGIES: tuple[tuple[RecoveryStrategy, Strategy], ...] = (
    (RecoveryStrategy.DIRECT, parse_direct),
    (RecoveryStrategy.REPAIRED, parse_repaired),
    (RecoveryStrategy.CODE_BLOCK, parse_code_block),
    (RecoveryStrategy.BRACE_EXTRACTION, parse_brace_extraction),
    (RecoveryStrategy.FIELD_EXTRACTION, parse_fields),
)


class ResponseRecoveryPipeline:
    """Stateless validator; one instance can be shared by every request."""

    def __init__(
        self,
        strategies: tuple[tuple[RecoveryStrategy, Strategy], ...] = STRATEGIES,
        rules: tuple[CategoryRule, ...] = CATEGORY_RULES,
    ) -> None:
        self._strategies = strategies
        self._rules = rules

    def validate(self, raw: str | None) -> ValidationOutcome:
        """Never raises; failures come back as ``error_category``."""
        text = raw if isinstance(raw, str) else ""
        try:
            for strategy, attempt in self._strategies:
                parsed = attempt(text)
                if parsed is not None:
                    return ValidationOutcome(is_valid=True, parsed=parsed, recovery_strategy=strategy)
            return ValidationOutcome(is_valid=False, error_category=categorize(text, self._rules))
        except Exception as exc:
            logger.error("Validation failed with exception: %s", exc)
            return ValidationOutcome(
                is_valid=False,
                error_category=ParseErrorCategory(
                    kind=ErrorKind.UNKNOWN,
                    severity=Severity.CRITICAL,
                    details=str(exc) or exc.__class__.__name__,
                ),
            )


def log_parse_error(
    category: ParseErrorCategory,
    model_id: str,
    style: str,
    strategy: RecoveryStrategy | None = None,
) -> None:
    """Log a parse failure at a level matching its severity."""
    args = (
        model_id,
        style,
        category.kind,
        category.field or "-",
        strategy or "none",
        category.details,
    )
    message = "Parse %s: model=%s style=%s kind=%s field=%s recovery=%s (%s)"
    if category.severity is Severity.CRITICAL:
        logger.error(message, "error", *args)
    elif category.severity is Severity.WARNING:
        logger.warning(message, "warning", *args)
    else:
        logger.debug(message, "info", *args)
