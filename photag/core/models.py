"""Core domain models for photo records, groups and the catalog aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

NORMAL_SRC_FMT = "images/normal/{}.JPG"
LAZY_SRC_FMT = "images/lazy/{}.JPG"


def normal_src_for(photo_id: str) -> str:
    """Locator of the display derivative for `photo_id`."""
    return NORMAL_SRC_FMT.format(photo_id)


def lazy_src_for(photo_id: str) -> str:
    """Locator of the lazy placeholder derivative for `photo_id`."""
    return LAZY_SRC_FMT.format(photo_id)


@dataclass
class ImportRecord:
    """One row of the externally maintained import manifest."""

    id: str
    file_name: str
    alt: str = ""
    location: str = ""


@dataclass
class ExifSummary:
    """The handful of EXIF facts the catalog cares about, as display strings."""

    year: str | None = None
    month: str | None = None
    day: str | None = None
    hour: str | None = None
    minutes: str | None = None
    lens: str | None = None
    time: str | None = None
    focal_length: str | None = None
    f_value: str | None = None
    iso: str | None = None


@dataclass
class PhotoRecord:
    """A single photo in the catalog.

    `file_name`, `alt` and `location` are owned by the import manifest; the
    optional fields are filled once from EXIF and belong to the user afterwards.
    """

    photo_id: str
    file_name: str
    alt: str = ""
    location: str = ""
    title: str | None = None
    year: str | None = None
    month: str | None = None
    day: str | None = None
    hour: str | None = None
    minutes: str | None = None
    body: str | None = None
    lens: str | None = None
    time: str | None = None
    focal_length: str | None = None
    f_value: str | None = None
    iso: str | None = None

    @property
    def normal_src(self) -> str:
        return normal_src_for(self.photo_id)

    @property
    def lazy_src(self) -> str:
        return lazy_src_for(self.photo_id)

    def to_import(self) -> ImportRecord:
        """Project back onto the manifest shape."""
        return ImportRecord(
            id=self.photo_id, file_name=self.file_name, alt=self.alt, location=self.location
        )


# Optional string fields shared by PhotoRecord and its GUI form, in display order.
PHOTO_OPTIONAL_FIELDS = (
    "title",
    "year",
    "month",
    "day",
    "hour",
    "minutes",
    "body",
    "lens",
    "time",
    "focal_length",
    "f_value",
    "iso",
)


@dataclass
class GroupRecord:
    """A user-defined group of photos."""

    group_id: str
    title: str
    description: str
    photo_id_list: list[str] = field(default_factory=list)
    year: str | None = None
    month: str | None = None
    day: str | None = None
    hour: str | None = None
    minutes: str | None = None
    location: str | None = None


GROUP_OPTIONAL_FIELDS = ("year", "month", "day", "hour", "minutes", "location")


@dataclass
class Catalog:
    """Ordered photo and group maps.

    `photos` iterates in import-manifest order, `groups` in recency order
    (most recently extended group first).
    """

    photos: dict[str, PhotoRecord] = field(default_factory=dict)
    groups: dict[str, GroupRecord] = field(default_factory=dict)
    # Manifest rows as last read, including those that yielded no photo (empty or
    # repeated id). They are written back in place so the manifest loses nothing.
    manifest_rows: list[ImportRecord] = field(default_factory=list)

    @property
    def photo_ids(self) -> list[str]:
        return list(self.photos)

    @property
    def group_ids(self) -> list[str]:
        return list(self.groups)

    def is_empty(self) -> bool:
        return not self.photos and not self.groups

    def manifest_projection(self) -> list[ImportRecord]:
        """Rows to write back to the import manifest, in manifest order.

        Rows backed by a photo carry its current values; rows without a photo are
        returned unchanged. Photos missing from `manifest_rows` are appended.
        """
        rows: list[ImportRecord] = []
        written: set[str] = set()
        for row in self.manifest_rows:
            record = self.photos.get(row.id) if row.id else None
            if record is None:
                rows.append(replace(row))
                continue
            rows.append(record.to_import())
            written.add(row.id)
        rows.extend(r.to_import() for pid, r in self.photos.items() if pid not in written)
        return rows
