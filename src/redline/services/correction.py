"""End-to-end "correct this text" orchestration."""

from __future__ import annotations

import logging
from typing import Any

from redline.capability.registry import CapabilityRegistry
from redline.core.exceptions import ModelNotSupportedError, SessionNotReadyError
from redline.core.types import Messages, PartialCallback
from redline.models.catalog import DEFAULT_MODEL_ID, MAX_TEXT_LENGTH, get_model_spec
from redline.models.correction import CorrectionResult, CorrectionStyle, Language
from redline.models.validation import ErrorKind, ParseErrorCategory, ParsedCorrection
from redline.recovery.pipeline import ResponseRecoveryPipeline, log_parse_error
from redline.recovery.streaming import bracket_imbalance, extract_partial_corrected
from redline.services.prompts import build_messages
from redline.sessions.inference_session import InferenceSession
from redline.sessions.manager import SessionManager

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "Could not understand the model response; the original text is unchanged."
PARSE_ERROR_DETAIL = "The model returned malformed JSON."
NO_CHANGES_NOTE = "(No changes needed)"

# Below this depth the streamed output has more closers than openers.
IMBALANCE_WARNING_DEPTH = -2


def _coerce_corrected(value: Any, original: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    if value and not isinstance(value, (bool, str)):
        return str(value)
    return original


def _coerce_explanation(value: Any) -> str | list[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ["" if v is None else str(v) for v in value]
    if value:
        return str(value)
    return ""


def _append_note(explanation: str | list[str], note: str) -> str | list[str]:
    if isinstance(explanation, list):
        if not explanation:
            return [note]
        if note in explanation[-1]:
            return explanation
        return [*explanation[:-1], f"{explanation[-1]} {note}".strip()]
    if note in explanation:
        return explanation
    return f"{explanation} {note}".strip()


def known_issue(category: ParseErrorCategory) -> str | None:
    """Short description of a recurring output defect, kept on the model's record."""
    if category.kind is ErrorKind.MALFORMED:
        return "Emits malformed JSON"
    if category.kind is ErrorKind.MISSING_FIELD and category.field:
        return f"Omits the '{category.field}' JSON field"
    if category.kind is ErrorKind.INVALID_TYPE and category.field:
        return f"Wrong JSON type for '{category.field}'"
    return None


class CorrectionService:
    """Runs a correction through the active session and recovery pipeline."""

    def __init__(
        self,
        *,
        sessions: SessionManager,
        registry: CapabilityRegistry,
        pipeline: ResponseRecoveryPipeline | None = None,
        default_model: str = DEFAULT_MODEL_ID,
    ) -> None:
        self._sessions = sessions
        self._registry = registry
        self._pipeline = pipeline or ResponseRecoveryPipeline()
        self._default_model = default_model

    async def correct(
        self,
        text: str,
        style: CorrectionStyle = CorrectionStyle.STANDARD,
        language: Language = Language.EN,
        on_partial: PartialCallback | None = None,
        *,
        model_id: str | None = None,
    ) -> CorrectionResult:
        """Correct ``text``.

        Unparseable model output never raises: the original text comes back
        with a diagnostic explanation. Session and engine failures propagate.
        """
        if len(text) > MAX_TEXT_LENGTH:
            raise ValueError(f"Text is too long ({len(text)} > {MAX_TEXT_LENGTH} characters)")

        spec = get_model_spec(model_id or self._default_model)
        if spec is None:
            raise ModelNotSupportedError(model_id or self._default_model)
        model_id = spec.id
        messages = build_messages(text, style, language)
        raw = await self._run(model_id, messages, on_partial)
        self._sessions.touch()
        return await self._shape(raw, text, style, model_id)

    async def _run(
        self, model_id: str, messages: Messages, on_partial: PartialCallback | None
    ) -> str:
        session = await self._sessions.acquire(model_id)
        try:
            return await self._generate(session, messages, on_partial)
        except SessionNotReadyError:
            if self._sessions.is_active(session):
                raise
            # Evicted between acquire and generation; load it once more.
            logger.info("Session for %s was evicted mid-request; re-acquiring", model_id)
            session = await self._sessions.acquire(model_id)
            return await self._generate(session, messages, on_partial)

    async def _generate(
        self,
        session: InferenceSession,
        messages: Messages,
        on_partial: PartialCallback | None,
    ) -> str:
        if on_partial is None:
            return await session.generate(messages)

        content = ""
        last_partial: str | None = None
        warned = False
        async for delta in session.stream(messages):
            content += delta
            braces, brackets = bracket_imbalance(content)
            if not warned and min(braces, brackets) < IMBALANCE_WARNING_DEPTH:
                logger.warning(
                    "Streaming response shows bracket imbalance (braces=%d, brackets=%d, length=%d)",
                    braces,
                    brackets,
                    len(content),
                )
                warned = True
            partial = extract_partial_corrected(content)
            if partial is not None and partial != last_partial:
                last_partial = partial
                on_partial(partial)
        return content

    async def _shape(self, raw: str, original: str, style: CorrectionStyle, model_id: str) -> CorrectionResult:
        outcome = self._pipeline.validate(raw)
        if outcome.is_valid and outcome.parsed is not None:
            await self._registry.record_success(model_id)
            logger.debug("Parsed response from %s via %s", model_id, outcome.recovery_strategy)
            return self._format(outcome.parsed, original, raw, model_id)

        await self._registry.record_failure(model_id)
        if outcome.error_category is not None:
            log_parse_error(outcome.error_category, model_id, str(style), outcome.recovery_strategy)
            issue = known_issue(outcome.error_category)
            if issue is not None:
                await self._registry.add_known_issue(model_id, issue)
        return CorrectionResult(
            original=original,
            corrected=original,
            explanation=PARSE_FAILURE_MESSAGE,
            parse_error=PARSE_ERROR_DETAIL,
            raw=raw,
            model_id=model_id,
        )

    @staticmethod
    def _format(parsed: ParsedCorrection, original: str, raw: str, model_id: str) -> CorrectionResult:
        corrected = _coerce_corrected(parsed.corrected, original)
        explanation = _coerce_explanation(parsed.explanation)
        if corrected.strip() == original.strip():
            explanation = _append_note(explanation, NO_CHANGES_NOTE)
        return CorrectionResult(
            original=original,
            corrected=corrected,
            explanation=explanation,
            raw=raw,
            model_id=model_id,
        )
