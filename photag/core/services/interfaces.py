"""Core service interfaces and shared result structures.

This module defines the dataclasses used to report batch outcomes across the
infrastructure and application layers, and the reader protocol the
reconciliation engine consumes for EXIF facts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from photag.core.models import ExifSummary


@dataclass
class DerivationResult:
    """Outcome of a derivative regeneration pass.

    Attributes:
        regenerated: Photo ids whose lazy and normal derivatives were rewritten.
        failed: Tuples of (photo_id, reason) for ids left stale.
        checked: Number of ids whose staleness was evaluated.
    """

    regenerated: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    checked: int = 0


@dataclass
class TickReport:
    """What a single orchestrator tick did.

    Attributes:
        metadata_ran: Whether the metadata trigger fired.
        reconciled: Whether the manifest changed and was merged.
        saved: Whether the catalog documents were written.
        derivation: Result of the derivative pass, if its trigger fired.
        save_error: Reason the save cycle failed, if it did.
    """

    metadata_ran: bool = False
    reconciled: bool = False
    saved: bool = False
    derivation: DerivationResult | None = None
    save_error: str | None = None


class IExifReader(Protocol):
    """Capability that yields the catalog's EXIF facts for an image file."""

    def read(self, path: str) -> ExifSummary:
        """Return EXIF facts for `path` or raise `ExifError`."""
        raise NotImplementedError
