"""EXIF extraction for new catalog entries via Pillow.

Only the handful of facts shown in the catalog are read, each rendered as a
display string. Any failure to open the file or find EXIF raises `ExifError`;
individual tags that are missing or malformed are simply left empty.
"""

from __future__ import annotations

from datetime import datetime
import math
from typing import Any

from PIL import Image
from loguru import logger

from photag.core.errors import ExifError
from photag.core.models import ExifSummary

EXIF_IFD_POINTER = 0x8769

TAG_DATETIME_ORIGINAL = 36867
TAG_EXPOSURE_TIME = 33434
TAG_F_NUMBER = 33437
TAG_ISO_SPEED = 34867
TAG_PHOTOGRAPHIC_SENSITIVITY = 34855
TAG_SHUTTER_SPEED_VALUE = 37377
TAG_FOCAL_LENGTH = 37386
TAG_LENS_MAKE = 42035
TAG_LENS_MODEL = 42036

EXIF_DT_FMT = "%Y:%m:%d %H:%M:%S"

# Shutter times outside this range are treated as corrupt tags.
MIN_EXPOSURE_SEC = 1e-6
MAX_EXPOSURE_SEC = 24 * 3600.0


def _first(value: Any) -> Any:
    if isinstance(value, (tuple, list)):
        return value[0] if value else None
    return value


def _as_float(value: Any) -> float | None:
    value = _first(value)
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if not math.isfinite(result):  # NaN from 0/0 rationals, or inf
        return None
    return result


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).strip("\x00 ").strip()
    return text or None


def format_exposure(seconds: float) -> str:
    """Render an exposure time as photographers write it (`1/250`, `2`)."""
    if seconds >= 1:
        return f"{seconds:g}"
    return f"1/{round(1 / seconds)}"


def shutter_seconds(exposure_time: float | None, apex: float | None) -> float | None:
    """Exposure in seconds from ExposureTime, else from the APEX ShutterSpeedValue.

    Returns None when neither is usable or the result is out of range.
    """
    seconds = exposure_time
    if seconds is None and apex is not None:
        try:
            seconds = 2.0 ** -apex
        except OverflowError:
            logger.debug("ShutterSpeedValue out of range: {}", apex)
            return None
    if seconds is None or not MIN_EXPOSURE_SEC <= seconds <= MAX_EXPOSURE_SEC:
        return None
    return seconds


def parse_exif_datetime(value: Any) -> tuple[str, str, str, str, str] | None:
    """Split an EXIF `YYYY:MM:DD HH:MM:SS` value into unpadded components."""
    text = _as_text(value)
    if not text:
        return None
    try:
        dt = datetime.strptime(text[:19], EXIF_DT_FMT)
    except ValueError:
        logger.debug("Unparsable EXIF datetime: {}", text)
        return None
    return str(dt.year), str(dt.month), str(dt.day), str(dt.hour), str(dt.minute)


def combine_lens(maker: str | None, model: str | None) -> str | None:
    if maker and model:
        return f"{maker} {model}"
    return model or maker


class PillowExifReader:
    """Reads `ExifSummary` facts from image files."""

    def read(self, path: str) -> ExifSummary:
        """Return EXIF facts for `path`.

        Raises:
            ExifError: if the file cannot be opened or carries no EXIF block.
        """
        try:
            with Image.open(path) as im:
                exif = im.getexif()
                if not exif:
                    raise ExifError(f"no EXIF data in {path}")
                sub = exif.get_ifd(EXIF_IFD_POINTER)
        except ExifError:
            raise
        except (OSError, ValueError, SyntaxError, TypeError) as ex:
            raise ExifError(f"EXIF read failed for {path}: {ex}") from ex

        def tag(code: int) -> Any:
            value = sub.get(code)
            return value if value is not None else exif.get(code)

        summary = ExifSummary()
        parts = parse_exif_datetime(tag(TAG_DATETIME_ORIGINAL))
        if parts:
            summary.year, summary.month, summary.day, summary.hour, summary.minutes = parts

        summary.lens = combine_lens(_as_text(tag(TAG_LENS_MAKE)), _as_text(tag(TAG_LENS_MODEL)))

        exposure = shutter_seconds(
            _as_float(tag(TAG_EXPOSURE_TIME)), _as_float(tag(TAG_SHUTTER_SPEED_VALUE))
        )
        if exposure is not None:
            summary.time = format_exposure(exposure)

        focal = _as_float(tag(TAG_FOCAL_LENGTH))
        if focal is not None:
            summary.focal_length = f"{focal:g} mm"

        f_number = _as_float(tag(TAG_F_NUMBER))
        if f_number is not None:
            summary.f_value = f"f/{f_number:g}"

        iso = _first(tag(TAG_ISO_SPEED)) or _first(tag(TAG_PHOTOGRAPHIC_SENSITIVITY))
        if iso:
            summary.iso = str(iso)
        return summary
