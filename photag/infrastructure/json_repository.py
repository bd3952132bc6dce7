"""JSON persistence for the photo catalog.

Three documents are kept in step: `photo_data.json` and `group_data.json` in the
work directory, and the import manifest, which receives the import-shaped
projection of the photo records so edits and ids flow back to its owner.
Every write replaces the whole document through a temp file and rename.
"""

from __future__ import annotations

from collections.abc import Iterable
import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from photag.core.errors import StoreError
from photag.core.models import (
    GROUP_OPTIONAL_FIELDS,
    PHOTO_OPTIONAL_FIELDS,
    Catalog,
    GroupRecord,
    ImportRecord,
    PhotoRecord,
)

PHOTO_FILE_NAME = "photo_data.json"
GROUP_FILE_NAME = "group_data.json"

# Serialized key for attributes whose JSON name differs from the Python name.
_PHOTO_KEY_ALIASES = {"f_value": "F_value"}


def _opt_str(value: Any) -> str | None:
    """Normalize an optional JSON value to `str | None`."""
    if value is None:
        return None
    return str(value)


def _req_str(row: dict[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None:
        raise KeyError(key)
    return str(value)


def write_json_atomic(path: str | Path, payload: Any) -> None:
    """Write `payload` as pretty JSON to `path` via temp file + rename.

    Raises:
        StoreError: if the directory or file cannot be written.
    """
    target = Path(path)
    tmp = target.with_name(target.name + ".tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8", newline="\n") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, target)
    except (OSError, TypeError, ValueError) as ex:
        logger.error("Write failed for {}: {}", target, ex)
        try:
            tmp.unlink()
        except OSError:
            pass
        raise StoreError(str(target), str(ex)) from ex


def _read_json_list(path: Path) -> list[Any] | None:
    """Return the JSON array at `path`, None if missing or unreadable.

    Raises:
        StoreError: if the file exists but is not a JSON array.
    """
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as ex:
        logger.warning("Cannot read {}: {}", path, ex)
        return None
    except ValueError as ex:
        raise StoreError(str(path), f"invalid JSON: {ex}") from ex
    if not isinstance(data, list):
        raise StoreError(str(path), "expected a JSON array")
    return data


def photo_to_json(record: PhotoRecord) -> dict[str, Any]:
    """Serialize a record in the field order downstream consumers expect."""
    return {
        "file_name": record.file_name,
        "photo_id": record.photo_id,
        "photo_src": record.normal_src,
        "photo_lazy_src": record.lazy_src,
        "alt": record.alt,
        "title": record.title,
        "year": record.year,
        "month": record.month,
        "day": record.day,
        "hour": record.hour,
        "minutes": record.minutes,
        "body": record.body,
        "lens": record.lens,
        "time": record.time,
        "focal_length": record.focal_length,
        "F_value": record.f_value,
        "iso": record.iso,
        "location": record.location,
    }


def photo_from_json(row: dict[str, Any]) -> PhotoRecord:
    """Parse one stored record; locators are recomputed, never read."""
    optional = {
        name: _opt_str(row.get(_PHOTO_KEY_ALIASES.get(name, name)))
        for name in PHOTO_OPTIONAL_FIELDS
    }
    return PhotoRecord(
        photo_id=_req_str(row, "photo_id"),
        file_name=_req_str(row, "file_name"),
        alt=str(row.get("alt") or ""),
        location=str(row.get("location") or ""),
        **optional,
    )


def group_to_json(group: GroupRecord) -> dict[str, Any]:
    return {
        "group_id": group.group_id,
        "photo_id_list": list(group.photo_id_list),
        "year": group.year,
        "month": group.month,
        "day": group.day,
        "hour": group.hour,
        "minutes": group.minutes,
        "title": group.title,
        "description": group.description,
        "location": group.location,
    }


def group_from_json(row: dict[str, Any]) -> GroupRecord:
    members = row.get("photo_id_list") or []
    if not isinstance(members, list):
        raise TypeError("photo_id_list must be a list")
    return GroupRecord(
        group_id=_req_str(row, "group_id"),
        title=str(row.get("title") or ""),
        description=str(row.get("description") or ""),
        photo_id_list=list(dict.fromkeys(str(pid) for pid in members)),
        **{name: _opt_str(row.get(name)) for name in GROUP_OPTIONAL_FIELDS},
    )


def import_to_json(item: ImportRecord) -> dict[str, str]:
    return {
        "file_name": item.file_name,
        "id": item.id,
        "alt": item.alt,
        "location": item.location,
    }


def load_manifest(manifest_path: str) -> list[ImportRecord]:
    """Read the import manifest.

    Raises:
        StoreError: if the manifest is missing, unreadable or malformed.
    """
    path = Path(manifest_path)
    data = _read_json_list(path)
    if data is None:
        raise StoreError(str(path), "import manifest not found or unreadable")
    items: list[ImportRecord] = []
    for row in data:
        try:
            if not isinstance(row, dict):
                raise TypeError(f"expected object, got {type(row).__name__}")
            items.append(
                ImportRecord(
                    id=str(row.get("id") or ""),
                    file_name=_req_str(row, "file_name"),
                    alt=str(row.get("alt") or ""),
                    location=str(row.get("location") or ""),
                )
            )
        except (KeyError, TypeError) as ex:
            raise StoreError(str(path), f"invalid manifest row {row!r}: {ex}") from ex
    return items


def save_manifest(manifest_path: str, items: Iterable[ImportRecord]) -> None:
    """Write the import-shaped projection back to `manifest_path`."""
    write_json_atomic(manifest_path, [import_to_json(it) for it in items])


class JsonCatalogRepository:
    """Load and save the catalog documents of a work directory."""

    def load(self, work_dir: str) -> Catalog:
        """Read photo and group records; missing files give an empty catalog.

        Rows that cannot be parsed are logged and skipped.

        Raises:
            StoreError: if a document exists but is not valid JSON.
        """
        base = Path(work_dir)
        catalog = Catalog()

        for row in _read_json_list(base / PHOTO_FILE_NAME) or []:
            try:
                record = photo_from_json(row)
            except (KeyError, TypeError, AttributeError) as ex:
                logger.error("Photo row error: {} | row={}", ex, row)
                continue
            catalog.photos[record.photo_id] = record

        for row in _read_json_list(base / GROUP_FILE_NAME) or []:
            try:
                group = group_from_json(row)
            except (KeyError, TypeError, AttributeError) as ex:
                logger.error("Group row error: {} | row={}", ex, row)
                continue
            catalog.groups[group.group_id] = group

        logger.info(
            "Loaded catalog from {}: {} photos, {} groups",
            base,
            len(catalog.photos),
            len(catalog.groups),
        )
        return catalog

    def save(self, catalog: Catalog, work_dir: str, manifest_path: str | None = None) -> None:
        """Write all catalog documents; raises `StoreError` on the first failure."""
        base = Path(work_dir)
        write_json_atomic(
            base / PHOTO_FILE_NAME, [photo_to_json(r) for r in catalog.photos.values()]
        )
        write_json_atomic(
            base / GROUP_FILE_NAME, [group_to_json(g) for g in catalog.groups.values()]
        )
        if manifest_path:
            save_manifest(manifest_path, catalog.manifest_projection())
        logger.info(
            "Saved catalog to {}: {} photos, {} groups",
            base,
            len(catalog.photos),
            len(catalog.groups),
        )
