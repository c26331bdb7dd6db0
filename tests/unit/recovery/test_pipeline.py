"""Tests for the ordered response recovery strategies."""

from __future__ import annotations

import logging

import pytest

from redline.models.validation import ErrorKind, ParseErrorCategory, RecoveryStrategy, Severity
from redline.recovery.pipeline import ResponseRecoveryPipeline, log_parse_error, repair


@pytest.fixture
def pipeline() -> ResponseRecoveryPipeline:
    return ResponseRecoveryPipeline()


class TestStrategies:
    def test_direct_json(self, pipeline):
        outcome = pipeline.validate('{"corrected": "Hello.", "explanation": ["Added period"]}')
        assert outcome.is_valid
        assert outcome.recovery_strategy is RecoveryStrategy.DIRECT
        assert outcome.parsed.corrected == "Hello."
        assert outcome.parsed.explanation == ["Added period"]

    def test_fenced_block(self, pipeline):
        raw = '```json\n{"corrected": "Hello.", "explanation": "fixed"}\n```'
        outcome = pipeline.validate(raw)
        assert outcome.is_valid
        assert outcome.recovery_strategy is RecoveryStrategy.CODE_BLOCK
        assert outcome.parsed.corrected == "Hello."

    def test_later_fenced_block_is_tried(self, pipeline):
        raw = "```\nnot json\n```\nthen\n```json\n{\"corrected\": \"Hi.\"}\n```"
        outcome = pipeline.validate(raw)
        assert outcome.recovery_strategy is RecoveryStrategy.CODE_BLOCK
        assert outcome.parsed.corrected == "Hi."

    def test_trailing_comma_is_repaired(self, pipeline):
        outcome = pipeline.validate('{"corrected": "Hello.", "explanation": ["a", "b",],}')
        assert outcome.is_valid
        assert outcome.recovery_strategy is RecoveryStrategy.REPAIRED
        assert outcome.parsed.explanation == ["a", "b"]

    def test_literal_newline_in_string_is_repaired(self, pipeline):
        outcome = pipeline.validate('{"corrected": "Line one.\nLine two.", "explanation": []}')
        assert outcome.recovery_strategy is RecoveryStrategy.REPAIRED
        assert outcome.parsed.corrected == "Line one.\nLine two."

    def test_field_name_variant_is_normalized(self, pipeline):
        outcome = pipeline.validate('{"corrected_text": "Hello.", "explanations": ["x"]}')
        assert outcome.is_valid
        assert outcome.parsed.corrected == "Hello."
        assert outcome.parsed.explanation == ["x"]

    def test_missing_comma_between_fields(self, pipeline):
        outcome = pipeline.validate('{"corrected": "Hello." "explanation": "added period"}')
        assert outcome.recovery_strategy is RecoveryStrategy.REPAIRED
        assert outcome.parsed.explanation == "added period"

    def test_windows_path_with_backslash_u_is_repaired(self, pipeline):
        outcome = pipeline.validate(r'{"corrected": "C:\users\x", "explanation": []}')
        assert outcome.recovery_strategy is RecoveryStrategy.REPAIRED
        assert outcome.parsed.corrected == "C:\\users\\x"

    def test_prose_wrapped_object(self, pipeline):
        raw = 'Sure! Here is the result: {"corrected": "Hello.", "explanation": []} Hope it helps.'
        outcome = pipeline.validate(raw)
        assert outcome.is_valid
        assert outcome.recovery_strategy is RecoveryStrategy.BRACE_EXTRACTION
        assert outcome.parsed.corrected == "Hello."

    def test_field_extraction_without_braces(self, pipeline):
        raw = 'corrected: "It\'s fine.", explanation: ["Fixed apostrophe", "Added period"]'
        outcome = pipeline.validate(raw)
        assert outcome.is_valid
        assert outcome.recovery_strategy is RecoveryStrategy.FIELD_EXTRACTION
        assert outcome.parsed.corrected == "It's fine."
        assert outcome.parsed.explanation == ["Fixed apostrophe", "Added period"]

    def test_field_extraction_with_single_quotes(self, pipeline):
        raw = "{'corrected': 'Hello there.', 'explanation': 'capitalized'"
        outcome = pipeline.validate(raw)
        assert outcome.recovery_strategy is RecoveryStrategy.FIELD_EXTRACTION
        assert outcome.parsed.corrected == "Hello there."
        assert outcome.parsed.explanation == "capitalized"

    def test_extra_keys_are_kept(self, pipeline):
        outcome = pipeline.validate('{"corrected": "Hi.", "confidence": 0.9}')
        assert outcome.parsed.extra == {"confidence": 0.9}


class TestFailures:
    def test_empty_response(self, pipeline):
        outcome = pipeline.validate("")
        assert not outcome.is_valid
        assert outcome.error_category.kind is ErrorKind.MALFORMED
        assert outcome.error_category.severity is Severity.CRITICAL

    def test_plain_prose(self, pipeline):
        outcome = pipeline.validate("I fixed the grammar for you.")
        assert not outcome.is_valid
        assert outcome.error_category.kind is ErrorKind.MALFORMED

    def test_missing_corrected_field(self, pipeline):
        outcome = pipeline.validate('{"text": "Hello.", "explanation": []}')
        assert outcome.error_category.kind is ErrorKind.MISSING_FIELD
        assert outcome.error_category.field == "corrected"
        assert outcome.error_category.severity is Severity.CRITICAL

    def test_unquoted_corrected_value(self, pipeline):
        outcome = pipeline.validate('{"corrected": Hello world, "explanation": "none"}')
        assert outcome.error_category.kind is ErrorKind.INVALID_TYPE
        assert outcome.error_category.severity is Severity.WARNING

    def test_non_string_input_is_treated_as_empty(self, pipeline):
        outcome = pipeline.validate(None)
        assert outcome.error_category.kind is ErrorKind.MALFORMED

    def test_strategy_exception_becomes_unknown_critical(self):
        def explode(raw: str):
            raise RuntimeError("boom")

        outcome = ResponseRecoveryPipeline(strategies=((RecoveryStrategy.DIRECT, explode),)).validate("{}")
        assert not outcome.is_valid
        assert outcome.error_category.kind is ErrorKind.UNKNOWN
        assert outcome.error_category.severity is Severity.CRITICAL


class TestRepair:
    def test_keeps_valid_escapes_and_doubles_stray_backslashes(self):
        assert repair(r'{"corrected": "a\nb \d"}') == r'{"corrected": "a\nb \\d"}'

    def test_backslash_u_needs_four_hex_digits(self):
        assert repair(r'{"corrected": "\u00e9 \users"}') == r'{"corrected": "\u00e9 \\users"}'

    def test_removes_trailing_commas(self):
        assert repair('{"a": [1, 2,],}') == '{"a": [1, 2]}'


def test_log_parse_error_uses_severity_level(caplog):
    critical = ParseErrorCategory(kind=ErrorKind.MALFORMED, severity=Severity.CRITICAL, details="empty")
    warning = ParseErrorCategory(kind=ErrorKind.INVALID_TYPE, severity=Severity.WARNING, details="unquoted")
    with caplog.at_level(logging.DEBUG, logger="redline.recovery.pipeline"):
        log_parse_error(critical, "m", "standard")
        log_parse_error(warning, "m", "formal", RecoveryStrategy.DIRECT)
    levels = [r.levelno for r in caplog.records]
    assert levels == [logging.ERROR, logging.WARNING]
