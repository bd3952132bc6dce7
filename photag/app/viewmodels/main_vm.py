"""ViewModel exposing the catalog to an editing surface."""

from __future__ import annotations

from dataclasses import replace

from loguru import logger

from photag.app.orchestrator import Orchestrator
from photag.app.viewmodels.group_vm import GroupForm
from photag.app.viewmodels.photo_vm import PhotoForm
from photag.core.errors import ValidationError
from photag.core.services.group_service import GroupService
from photag.core.services.interfaces import DerivationResult


class MainVM:
    """Main application view-model.

    Mediates between the orchestrator-owned catalog and form-based editors.
    Edits are applied to the in-memory catalog and reach disk on the next
    metadata trigger or an explicit `save_now()`.
    """

    def __init__(self, orchestrator: Orchestrator, groups: GroupService | None = None) -> None:
        """Create a MainVM.

        Args:
            orchestrator: Session orchestrator owning catalog and stores.
            groups: Group editing service (defaults to `GroupService`).
        """
        self._orc = orchestrator
        self._groups = groups or GroupService()

    @property
    def photo_ids(self) -> list[str]:
        """Photo ids in import-manifest order."""
        return self._orc.catalog.photo_ids

    @property
    def group_ids(self) -> list[str]:
        """Group ids, most recently extended first."""
        return self._orc.catalog.group_ids

    def photo_form(self, photo_id: str) -> PhotoForm:
        return PhotoForm.from_record(self._orc.catalog.photos[photo_id])

    def apply_photo_form(self, form: PhotoForm) -> None:
        """Store user edits; id and file name are not editable here."""
        catalog = self._orc.catalog
        current = catalog.photos.get(form.photo_id)
        if current is None:
            raise KeyError(form.photo_id)
        edited = form.to_record()
        catalog.photos[form.photo_id] = replace(edited, file_name=current.file_name)

    def group_form(self, group_id: str) -> GroupForm:
        return GroupForm.from_record(self._orc.catalog.groups[group_id])

    def apply_group_form(self, form: GroupForm) -> None:
        """Update a group's descriptive fields; membership is kept."""
        catalog = self._orc.catalog
        current = catalog.groups.get(form.group_id)
        if current is None:
            raise KeyError(form.group_id)
        for name in ("title", "description"):
            if not getattr(form, name).strip():
                raise ValidationError(name, f"Group {name} is required")
        catalog.groups[form.group_id] = replace(
            form.to_record(), photo_id_list=list(current.photo_id_list)
        )

    def create_group(self, form: GroupForm) -> None:
        """Create a group from `form`; raises `ValidationError` if incomplete."""
        self._groups.create_group(self._orc.catalog, form.to_record())

    def delete_group(self, group_id: str) -> bool:
        return self._groups.delete_group(self._orc.catalog, group_id)

    def group_checks(self, photo_id: str) -> dict[str, bool]:
        """Check state of every group for `photo_id`, in group order."""
        member_of = set(self._groups.groups_containing(self._orc.catalog, photo_id))
        return {gid: gid in member_of for gid in self._orc.catalog.groups}

    def set_group_checks(self, photo_id: str, checks: dict[str, bool]) -> None:
        promoted = self._groups.update_membership(self._orc.catalog, photo_id, checks)
        if promoted:
            logger.debug("Photo {} added to groups {}", photo_id, promoted)

    def thumbnail(self, photo_id: str) -> bytes | None:
        """Display-size JPEG bytes for `photo_id`, None if unavailable."""
        return self._orc.images.get_thumbnail(self._orc.source_path(photo_id))

    def save_now(self) -> None:
        """Write catalog, manifest and staleness map immediately."""
        self._orc.save_now()

    def regenerate_now(self) -> DerivationResult:
        """Regenerate every stale derivative immediately."""
        return self._orc.regenerate_now()
