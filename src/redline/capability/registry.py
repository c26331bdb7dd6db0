"""Per-model reliability statistics, persisted in the key-value store."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from redline.core.protocols import IKeyValueStore
from redline.models.correction import CapabilityRecord

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CapabilityRegistry:
    """Tracks how often each model's output could not be recovered.

    The failure rate is failures over a rolling sample count capped at
    ``MAX_SAMPLES``; once the cap is reached, older failures decay instead of
    the sample count growing. A success subtracts ``SUCCESS_DECREMENT`` from
    the rate directly. Storage errors are logged and never raised.

    Counters update synchronously; only the write-through to the store is
    awaited, one write at a time, each carrying the latest snapshot.
    """

    STORAGE_KEY = "model_capabilities_registry"
    MAX_SAMPLES = 100
    SUCCESS_DECREMENT = 0.01
    RELIABILITY_THRESHOLD = 0.1

    def __init__(self, store: IKeyValueStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock
        self._records: dict[str, CapabilityRecord] = {}
        self._write_lock = asyncio.Lock()

    async def load(self) -> int:
        """Load persisted records. Returns how many were loaded."""
        try:
            stored = await self._store.get(self.STORAGE_KEY)
            if not stored:
                return 0
            raw = json.loads(stored)
            self._records = {
                model_id: CapabilityRecord.model_validate(record)
                for model_id, record in raw.items()
            }
        except (ValueError, AttributeError, ValidationError) as exc:
            logger.warning("Discarding unreadable capability registry: %s", exc)
            self._records = {}
            return 0
        except Exception as exc:
            logger.warning("Failed to load capabilities from storage: %s", exc)
            return 0
        logger.debug("Capability registry loaded %d models", len(self._records))
        return len(self._records)

    async def _persist(self) -> None:
        async with self._write_lock:
            try:
                payload = {mid: rec.model_dump(mode="json") for mid, rec in self._records.items()}
                await self._store.set(self.STORAGE_KEY, json.dumps(payload))
            except Exception as exc:
                logger.warning("Failed to persist capabilities: %s", exc)

    def _record(self, model_id: str) -> CapabilityRecord:
        record = self._records.get(model_id)
        if record is None:
            record = CapabilityRecord(model_id=model_id, last_updated=self._clock())
            self._records[model_id] = record
        return record

    def _observe(self, record: CapabilityRecord) -> None:
        if record.samples >= self.MAX_SAMPLES:
            record.failures *= (self.MAX_SAMPLES - 1) / self.MAX_SAMPLES
        else:
            record.samples += 1

    # ---- recording ----

    async def record_failure(self, model_id: str) -> None:
        record = self._record(model_id)
        was_reliable = record.failure_rate < self.RELIABILITY_THRESHOLD
        self._observe(record)
        record.failures += 1
        record.failure_rate = min(1.0, record.failures / record.samples)
        record.last_updated = self._clock()
        if was_reliable and not self.is_reliable(model_id):
            logger.warning(
                "Model %s is now unreliable (failure rate %.2f)", model_id, record.failure_rate
            )
        await self._persist()

    async def record_success(self, model_id: str) -> None:
        record = self._record(model_id)
        self._observe(record)
        record.failure_rate = max(0.0, record.failure_rate - self.SUCCESS_DECREMENT)
        record.last_updated = self._clock()
        await self._persist()

    async def add_known_issue(self, model_id: str, issue: str) -> None:
        record = self._record(model_id)
        if issue in record.known_issues:
            return
        record.known_issues.append(issue)
        record.last_updated = self._clock()
        await self._persist()

    async def clear(self) -> None:
        self._records.clear()
        try:
            await self._store.delete(self.STORAGE_KEY)
        except Exception as exc:
            logger.warning("Failed to clear persisted capabilities: %s", exc)

    # ---- queries ----

    def get_capability(self, model_id: str) -> CapabilityRecord:
        """Return the record for ``model_id`` (a default one if never seen)."""
        record = self._records.get(model_id)
        if record is None:
            return CapabilityRecord(model_id=model_id, last_updated=self._clock())
        return record.model_copy(deep=True)

    def get_failure_rate(self, model_id: str) -> float:
        record = self._records.get(model_id)
        return record.failure_rate if record is not None else 0.0

    def is_reliable(self, model_id: str) -> bool:
        return self.get_failure_rate(model_id) < self.RELIABILITY_THRESHOLD

    def has_known_json_issue(self, model_id: str) -> bool:
        issues = self._records[model_id].known_issues if model_id in self._records else []
        return any("json" in issue.lower() or "format" in issue.lower() for issue in issues)

    def models_by_reliability(self) -> list[CapabilityRecord]:
        return sorted(
            (rec.model_copy(deep=True) for rec in self._records.values()),
            key=lambda rec: rec.failure_rate,
        )
