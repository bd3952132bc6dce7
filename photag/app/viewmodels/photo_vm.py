"""Editable string form of a `PhotoRecord` for text-field bindings."""

from __future__ import annotations

from dataclasses import dataclass

from photag.core.models import PhotoRecord, lazy_src_for, normal_src_for


def _to_opt(value: str) -> str | None:
    return value if value else None


@dataclass
class PhotoForm:
    """Every field as a plain string; `""` stands for an absent value."""

    photo_id: str
    file_name: str
    alt: str = ""
    location: str = ""
    title: str = ""
    year: str = ""
    month: str = ""
    day: str = ""
    hour: str = ""
    minutes: str = ""
    body: str = ""
    lens: str = ""
    time: str = ""
    focal_length: str = ""
    f_value: str = ""
    iso: str = ""

    @property
    def normal_src(self) -> str:
        return normal_src_for(self.photo_id)

    @property
    def lazy_src(self) -> str:
        return lazy_src_for(self.photo_id)

    @classmethod
    def from_record(cls, record: PhotoRecord) -> PhotoForm:
        return cls(
            photo_id=record.photo_id,
            file_name=record.file_name,
            alt=record.alt,
            location=record.location,
            title=record.title or "",
            year=record.year or "",
            month=record.month or "",
            day=record.day or "",
            hour=record.hour or "",
            minutes=record.minutes or "",
            body=record.body or "",
            lens=record.lens or "",
            time=record.time or "",
            focal_length=record.focal_length or "",
            f_value=record.f_value or "",
            iso=record.iso or "",
        )

    def to_record(self) -> PhotoRecord:
        return PhotoRecord(
            photo_id=self.photo_id,
            file_name=self.file_name,
            alt=self.alt,
            location=self.location,
            title=_to_opt(self.title),
            year=_to_opt(self.year),
            month=_to_opt(self.month),
            day=_to_opt(self.day),
            hour=_to_opt(self.hour),
            minutes=_to_opt(self.minutes),
            body=_to_opt(self.body),
            lens=_to_opt(self.lens),
            time=_to_opt(self.time),
            focal_length=_to_opt(self.focal_length),
            f_value=_to_opt(self.f_value),
            iso=_to_opt(self.iso),
        )
