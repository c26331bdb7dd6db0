"""Service container shared by the routers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import Request

from redline.capability.registry import CapabilityRegistry
from redline.core.config import AppSettings
from redline.core.protocols import IInferenceEngine, IKeyValueStore
from redline.models.session import LoadProgress
from redline.services.correction import CorrectionService
from redline.sessions.manager import SessionManager
from redline.sessions.memory import MemoryPressureMonitor

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Keeps the latest load progress report for polling clients."""

    def __init__(self) -> None:
        self.latest: LoadProgress | None = None

    def __call__(self, progress: LoadProgress) -> None:
        self.latest = progress
        logger.debug(
            "Loading %s: %s %.0f%% %s",
            progress.model_id,
            progress.phase,
            progress.fraction * 100,
            progress.text,
        )


@dataclass
class Services:
    settings: AppSettings
    store: IKeyValueStore
    engine: IInferenceEngine
    sessions: SessionManager
    registry: CapabilityRegistry
    corrections: CorrectionService
    monitor: MemoryPressureMonitor
    progress: ProgressTracker = field(default_factory=ProgressTracker)


def get_services(request: Request) -> Services:
    return request.app.state.services
