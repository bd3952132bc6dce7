"""Session orchestration: startup pass and periodic metadata/derivative refresh.

The orchestrator owns the in-memory catalog and staleness map for the session.
It never starts threads or timers itself; a driver calls `tick()` and each of
the two triggers decides, from the injected clock, whether it is due.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
import os

from loguru import logger

from photag.core.errors import CodecError, StoreError
from photag.core.models import Catalog
from photag.core.services.interfaces import DerivationResult, TickReport
from photag.core.services.reconcile_service import ReconcileService
from photag.infrastructure.exif_reader import PillowExifReader
from photag.infrastructure.image_service import ImageService
from photag.infrastructure.json_repository import JsonCatalogRepository, load_manifest
from photag.infrastructure.settings import JsonSettings
from photag.infrastructure.staleness_store import StalenessStore
from photag.infrastructure.utils import get_file_timestamp, now_local

METADATA_INTERVAL_SEC = 60
DERIVATIVE_INTERVAL_SEC = 7 * 60


@dataclass
class PeriodicTrigger:
    """Fires once `interval` has elapsed since the last firing."""

    interval: timedelta
    last_fired: datetime

    def due(self, now: datetime) -> bool:
        return now - self.last_fired >= self.interval

    def fire(self, now: datetime) -> None:
        self.last_fired = now


class Orchestrator:
    """Keeps catalog, manifest and derivatives in step for one work directory."""

    def __init__(
        self,
        manifest_path: str,
        original_folder: str,
        work_dir: str,
        *,
        settings: JsonSettings | None = None,
        repo: JsonCatalogRepository | None = None,
        reconciler: ReconcileService | None = None,
        images: ImageService | None = None,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.manifest_path = manifest_path
        self.original_folder = original_folder
        self.work_dir = work_dir
        self._repo = repo or JsonCatalogRepository()
        self._reconciler = reconciler or ReconcileService(PillowExifReader())
        self.images = images or ImageService(work_dir, settings)
        self._clock = clock

        metadata_sec = METADATA_INTERVAL_SEC
        derivative_sec = DERIVATIVE_INTERVAL_SEC
        if settings is not None:
            metadata_sec = settings.get_int("schedule.metadata_interval_sec", metadata_sec)
            derivative_sec = settings.get_int("schedule.derivative_interval_sec", derivative_sec)
        started = clock()
        self.metadata_trigger = PeriodicTrigger(timedelta(seconds=metadata_sec), started)
        self.derivative_trigger = PeriodicTrigger(timedelta(seconds=derivative_sec), started)

        self.catalog = Catalog()
        self.staleness = StalenessStore()
        self._manifest_seen: datetime | None = None

    def source_path(self, photo_id: str) -> str:
        """Path of the original image behind `photo_id`."""
        return os.path.join(self.original_folder, self.catalog.photos[photo_id].file_name)

    def start(self) -> DerivationResult:
        """Load state, merge the manifest, derive stale photos and save.

        Raises:
            StoreError: if the manifest or a catalog document cannot be read, or
                the initial save fails.
        """
        self.catalog = self._repo.load(self.work_dir)
        self.staleness = StalenessStore.load(self.work_dir)
        self._manifest_seen = get_file_timestamp(self.manifest_path)
        manifest = load_manifest(self.manifest_path)
        self.catalog = self._reconciler.reconcile(self.catalog, manifest, self.original_folder)
        result = self.regenerate_now()
        self.save_now()
        return result

    def tick(self) -> TickReport:
        """Run whichever periodic actions are due at the current clock time."""
        report = TickReport()
        now = self._clock()
        if self.metadata_trigger.due(now):
            report.metadata_ran = True
            self._refresh_metadata(report)
            self.metadata_trigger.fire(self._clock())
        if self.derivative_trigger.due(now):
            report.derivation = self._derive_stale()
            try:
                self.staleness.save(self.work_dir)
            except StoreError as ex:
                logger.error("Saving staleness map failed: {}", ex)
                report.save_error = str(ex)
            self.derivative_trigger.fire(self._clock())
        return report

    def save_now(self) -> None:
        """Persist catalog, manifest projection and staleness map.

        Raises:
            StoreError: if any document cannot be written.
        """
        self._save_catalog()
        self.staleness.save(self.work_dir)
        self.metadata_trigger.fire(self._clock())

    def regenerate_now(self) -> DerivationResult:
        """Derive every stale photo now and persist the staleness map.

        Raises:
            StoreError: if the staleness map cannot be written.
        """
        result = self._derive_stale()
        self.staleness.save(self.work_dir)
        self.derivative_trigger.fire(self._clock())
        return result

    def _refresh_metadata(self, report: TickReport) -> None:
        stamp = get_file_timestamp(self.manifest_path)
        if stamp is None:
            logger.warning("Manifest timestamp unavailable: {}", self.manifest_path)
        elif stamp != self._manifest_seen:
            try:
                manifest = load_manifest(self.manifest_path)
            except StoreError as ex:
                # Likely mid-edit; saving now would overwrite the user's file.
                logger.warning("Manifest unreadable, retrying next cycle: {}", ex)
                return
            logger.info("Manifest changed, reconciling {} entries", len(manifest))
            self.catalog = self._reconciler.reconcile(
                self.catalog, manifest, self.original_folder
            )
            report.reconciled = True
        try:
            self._save_catalog()
            report.saved = True
        except StoreError as ex:
            logger.error("Saving catalog failed: {}", ex)
            report.save_error = str(ex)

    def _save_catalog(self) -> None:
        self._repo.save(self.catalog, self.work_dir, self.manifest_path)
        self._manifest_seen = get_file_timestamp(self.manifest_path)

    def _derive_stale(self) -> DerivationResult:
        result = DerivationResult()
        for photo_id in list(self.catalog.photos):
            source = self.source_path(photo_id)
            result.checked += 1
            if not self.staleness.is_stale(photo_id, source):
                continue
            try:
                self.images.write_derivatives(photo_id, source)
            except (OSError, CodecError) as ex:
                logger.error("Derivation failed for {} ({}): {}", photo_id, source, ex)
                result.failed.append((photo_id, str(ex)))
                continue
            self.staleness.mark_fresh(photo_id, self._clock())
            result.regenerated.append(photo_id)
        logger.info(
            "Derivative pass: {} checked, {} regenerated, {} failed",
            result.checked,
            len(result.regenerated),
            len(result.failed),
        )
        return result
