from __future__ import annotations

from dataclasses import dataclass, field

from photag.core.models import GroupRecord


@dataclass
class GroupForm:
    group_id: str = ""
    title: str = ""
    description: str = ""
    photo_id_list: list[str] = field(default_factory=list)
    year: str = ""
    month: str = ""
    day: str = ""
    hour: str = ""
    minutes: str = ""
    location: str = ""

    @classmethod
    def from_record(cls, record: GroupRecord) -> GroupForm:
        return cls(
            group_id=record.group_id,
            title=record.title,
            description=record.description,
            photo_id_list=list(record.photo_id_list),
            year=record.year or "",
            month=record.month or "",
            day=record.day or "",
            hour=record.hour or "",
            minutes=record.minutes or "",
            location=record.location or "",
        )

    def to_record(self) -> GroupRecord:
        return GroupRecord(
            group_id=self.group_id,
            title=self.title,
            description=self.description,
            photo_id_list=list(self.photo_id_list),
            year=self.year or None,
            month=self.month or None,
            day=self.day or None,
            hour=self.hour or None,
            minutes=self.minutes or None,
            location=self.location or None,
        )
