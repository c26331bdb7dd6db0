"""Type aliases used across the Redline service."""

from __future__ import annotations

from collections.abc import Callable

Message = dict[str, str]
Messages = list[Message]
PartialCallback = Callable[[str], None]
