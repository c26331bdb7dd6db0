"""Tests for prompt construction."""

from __future__ import annotations

import pytest

from redline.models.correction import CorrectionStyle, Language
from redline.services.prompts import STYLE_INSTRUCTIONS, build_messages


def test_messages_have_system_and_user_roles():
    messages = build_messages("teh text", CorrectionStyle.STANDARD, Language.EN)
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "English" in messages[0]["content"]
    assert '"corrected"' in messages[0]["content"]
    assert "teh text" in messages[1]["content"]


@pytest.mark.parametrize("style", list(CorrectionStyle))
def test_every_style_has_an_instruction(style):
    messages = build_messages("x", style, Language.EN)
    assert STYLE_INSTRUCTIONS[style] in messages[1]["content"]


def test_language_is_named_in_system_prompt():
    messages = build_messages("Hola", CorrectionStyle.CASUAL, Language.ES)
    assert "Spanish" in messages[0]["content"]
    assert "{language}" not in messages[0]["content"]


def test_user_text_with_placeholders_is_kept_verbatim():
    messages = build_messages("use {style} and {text}", CorrectionStyle.SIMPLE, Language.EN)
    assert "use {style} and {text}" in messages[1]["content"]
