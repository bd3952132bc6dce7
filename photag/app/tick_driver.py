from __future__ import annotations

from PySide6.QtCore import QObject, QTimer
from loguru import logger

from photag.app.orchestrator import Orchestrator


class TickDriver(QObject):
    """Calls `Orchestrator.tick()` from a `QTimer` on the owning thread's event loop.

    Ticks run synchronously on that thread, so a long derivative pass delays
    the next tick instead of overlapping it.
    """

    def __init__(self, orchestrator: Orchestrator, interval_ms: int = 1000) -> None:
        super().__init__()
        self._orc = orchestrator
        self._timer = QTimer(self)
        self._timer.setInterval(max(1, int(interval_ms)))
        self._timer.timeout.connect(self._on_timeout)

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def _on_timeout(self) -> None:
        report = self._orc.tick()
        if report.save_error:
            logger.error("Save cycle failed: {}", report.save_error)
        if report.derivation and report.derivation.failed:
            logger.warning(
                "{} photos left stale: {}",
                len(report.derivation.failed),
                ", ".join(pid for pid, _ in report.derivation.failed),
            )
