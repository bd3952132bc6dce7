from __future__ import annotations

from datetime import datetime, timedelta
import io
from pathlib import Path

from PIL import Image
from PIL.TiffImagePlugin import IFDRational
import pytest

from photag.core.errors import ExifError
from photag.core.models import ExifSummary
from photag.infrastructure.utils import now_local

EXIF_IFD = 0x8769


def build_exif(
    *,
    taken: str | None = "2023:05:14 18:42:07",
    lens_make: str | None = "Sigma",
    lens_model: str | None = "35mm F1.4 DG HSM",
) -> Image.Exif:
    exif = Image.Exif()
    exif[0x010F] = "Nikon"
    sub: dict[int, object] = {
        33434: IFDRational(1, 250),
        33437: IFDRational(14, 10),
        34867: 400,
        37386: IFDRational(35, 1),
    }
    if taken:
        sub[36867] = taken
    if lens_make:
        sub[42035] = lens_make
    if lens_model:
        sub[42036] = lens_model
    exif[EXIF_IFD] = sub
    return exif


def jpeg_bytes(
    size: tuple[int, int] = (400, 300),
    color: tuple[int, int, int] = (200, 120, 40),
    exif: Image.Exif | None = None,
    extra_segments: list[bytes] | None = None,
) -> bytes:
    """Encode a solid-color JPEG, optionally with EXIF and raw extra segments."""
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    kwargs = {"exif": exif} if exif is not None else {}
    img.save(buf, "JPEG", quality=90, **kwargs)
    data = buf.getvalue()
    if extra_segments:
        data = data[:2] + b"".join(extra_segments) + data[2:]
    return data


def app_segment(marker: int, payload: bytes) -> bytes:
    return b"\xff" + bytes([marker]) + (len(payload) + 2).to_bytes(2, "big") + payload


@pytest.fixture
def make_jpeg(tmp_path: Path):
    """Write a JPEG under `tmp_path/originals` and return its path."""

    def _make(name: str, **kwargs) -> Path:
        folder = tmp_path / "originals"
        folder.mkdir(exist_ok=True)
        path = folder / name
        path.write_bytes(jpeg_bytes(**kwargs))
        return path

    return _make


class FakeClock:
    """Controllable clock starting at the real current instant."""

    def __init__(self) -> None:
        self.now: datetime = now_local()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class StubExifReader:
    """Returns canned summaries by file name and records every lookup."""

    def __init__(self, by_name: dict[str, ExifSummary] | None = None) -> None:
        self.by_name = by_name or {}
        self.calls: list[str] = []

    def read(self, path: str) -> ExifSummary:
        self.calls.append(path)
        name = Path(path).name
        if name not in self.by_name:
            raise ExifError(f"no EXIF for {name}")
        return self.by_name[name]
