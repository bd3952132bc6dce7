"""Merge the import manifest into the persisted catalog.

The manifest is authoritative for `file_name`, `alt` and `location` only. Every
other field of an existing record is user-owned and copied through unchanged;
new ids get their optional fields from EXIF exactly once.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
import os

from loguru import logger

from photag.core.errors import ExifError
from photag.core.models import Catalog, ExifSummary, GroupRecord, ImportRecord, PhotoRecord
from photag.core.services.interfaces import IExifReader


class ReconcileService:
    """Builds a new `Catalog` from an existing one plus an import manifest."""

    def __init__(self, exif_reader: IExifReader) -> None:
        self._exif = exif_reader

    def reconcile(
        self,
        existing: Catalog,
        manifest: Iterable[ImportRecord],
        original_folder: str,
    ) -> Catalog:
        """Return a new catalog reflecting `manifest`.

        Photo order follows the manifest. Group order is kept and each group's
        membership is pruned to ids that survived. All manifest rows, including
        those without an id, are kept on the result for writing back.
        """
        rows = [replace(item) for item in manifest]
        photos: dict[str, PhotoRecord] = {}
        created = 0
        for item in rows:
            if not item.id:
                logger.warning("Manifest entry without id kept as-is: {}", item.file_name)
                continue
            if item.id in photos:
                logger.warning("Duplicate manifest id {}, last entry wins", item.id)
            current = existing.photos.get(item.id)
            if current is not None:
                photos[item.id] = replace(
                    current,
                    photo_id=item.id,
                    file_name=item.file_name,
                    alt=item.alt,
                    location=item.location,
                )
            else:
                photos[item.id] = self._new_record(item, original_folder)
                created += 1

        groups = {gid: _prune_group(g, photos) for gid, g in existing.groups.items()}
        dropped = len(existing.photos.keys() - photos.keys())
        logger.info(
            "Reconciled {} photos ({} new, {} dropped), {} groups",
            len(photos),
            created,
            dropped,
            len(groups),
        )
        return Catalog(photos=photos, groups=groups, manifest_rows=rows)

    def _new_record(self, item: ImportRecord, original_folder: str) -> PhotoRecord:
        path = os.path.join(original_folder, item.file_name)
        try:
            exif = self._exif.read(path)
        except ExifError as ex:
            logger.warning("EXIF unavailable for {} ({}): {}", item.id, path, ex)
            exif = ExifSummary()
        return PhotoRecord(
            photo_id=item.id,
            file_name=item.file_name,
            alt=item.alt,
            location=item.location,
            title=None,
            year=exif.year,
            month=exif.month,
            day=exif.day,
            hour=exif.hour,
            minutes=exif.minutes,
            body=None,
            lens=exif.lens,
            time=exif.time,
            focal_length=exif.focal_length,
            f_value=exif.f_value,
            iso=exif.iso,
        )


def _prune_group(group: GroupRecord, photos: dict[str, PhotoRecord]) -> GroupRecord:
    kept = [pid for pid in group.photo_id_list if pid in photos]
    if len(kept) != len(group.photo_id_list):
        logger.debug(
            "Group {} lost {} members", group.group_id, len(group.photo_id_list) - len(kept)
        )
    return replace(group, photo_id_list=kept)
