"""Group editing operations on a `Catalog`.

Groups are kept in recency order: a group that just gained a photo moves to the
front so the editing surface lists recently used groups first.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace

from loguru import logger

from photag.core.errors import ValidationError
from photag.core.models import Catalog, GroupRecord


class GroupService:
    """Validated create/delete and membership updates for groups."""

    def create_group(self, catalog: Catalog, group: GroupRecord) -> None:
        """Append `group` to the catalog.

        Raises:
            ValidationError: if `group_id`, `title` or `description` is empty, or
                the id is already taken. The catalog is left untouched.
        """
        for name in ("group_id", "title", "description"):
            if not getattr(group, name).strip():
                raise ValidationError(name, f"Group {name} is required")
        if group.group_id in catalog.groups:
            raise ValidationError("group_id", f"Group {group.group_id} already exists")
        members = list(dict.fromkeys(pid for pid in group.photo_id_list if pid in catalog.photos))
        catalog.groups[group.group_id] = replace(group, photo_id_list=members)
        logger.info("Created group {} with {} photos", group.group_id, len(members))

    def delete_group(self, catalog: Catalog, group_id: str) -> bool:
        """Remove a group; return False when it did not exist."""
        removed = catalog.groups.pop(group_id, None)
        if removed is None:
            logger.warning("Group {} not found", group_id)
            return False
        logger.info("Deleted group {}", group_id)
        return True

    def groups_containing(self, catalog: Catalog, photo_id: str) -> list[str]:
        """Ids of groups that list `photo_id`, in catalog order."""
        return [gid for gid, g in catalog.groups.items() if photo_id in g.photo_id_list]

    def update_membership(
        self, catalog: Catalog, photo_id: str, checks: Mapping[str, bool]
    ) -> list[str]:
        """Apply per-group check states for one photo.

        Unchecked groups drop the photo. Checked groups that did not contain it
        append it and are promoted to the front, in `checks` order; all other
        groups keep their relative order. Unknown group ids are ignored, and a
        photo id missing from the catalog is never added to any group.

        Returns:
            Ids of the groups that gained the photo.
        """
        known = photo_id in catalog.photos
        if not known:
            logger.warning("Photo {} not in catalog, membership not extended", photo_id)
        promoted: list[str] = []
        for group_id, is_checked in checks.items():
            group = catalog.groups.get(group_id)
            if group is None:
                continue
            members = list(group.photo_id_list)
            if photo_id in members:
                if not is_checked:
                    members = [pid for pid in members if pid != photo_id]
            elif is_checked and known:
                members.append(photo_id)
                promoted.append(group_id)
            catalog.groups[group_id] = replace(group, photo_id_list=members)

        if promoted:
            order = promoted + [gid for gid in catalog.groups if gid not in promoted]
            catalog.groups = {gid: catalog.groups[gid] for gid in order}
        return promoted
