"""Source-level check that annotations use the ``X | None`` union syntax."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[2] / "src" / "redline"
_OLD_STYLE = re.compile(r"\b(Optional|Union)\[")


@pytest.mark.parametrize("path", sorted(SRC.rglob("*.py")), ids=lambda p: str(p.relative_to(SRC)))
def test_no_optional_or_union_annotations(path):
    offending = [
        f"{lineno}: {line.strip()}"
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1)
        if _OLD_STYLE.search(line)
    ]
    assert offending == []
