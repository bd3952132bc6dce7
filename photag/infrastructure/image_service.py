"""Derivative production and the in-memory display thumbnail cache.

Each source photo yields two files under the work directory,
`images/lazy/{id}.JPG` and `images/normal/{id}.JPG`, plus a display thumbnail
kept only in memory. All three come from a single decode of the original.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
import hashlib
import os
from pathlib import Path

from loguru import logger

from photag.core.errors import CodecError
from photag.core.models import lazy_src_for, normal_src_for
from photag.infrastructure import jpeg_codec
from photag.infrastructure.settings import JsonSettings


@dataclass(frozen=True)
class DerivativePolicy:
    """Fixed quality/size pair for one kind of derivative."""

    name: str
    quality: int
    max_dimension: int


LAZY = DerivativePolicy("lazy", 75, 32)
NORMAL = DerivativePolicy("normal", 85, 2048)
THUMBNAIL = DerivativePolicy("thumbnail", 70, 600)


def _policy_from_settings(
    settings: JsonSettings | None, default: DerivativePolicy
) -> DerivativePolicy:
    if settings is None:
        return default
    base = f"derivatives.{default.name}"
    return DerivativePolicy(
        default.name,
        settings.get_int(f"{base}.quality", default.quality),
        settings.get_int(f"{base}.max_dimension", default.max_dimension),
    )


def _compute_cache_key(path: str, size_key: int) -> str:
    """Compute a stable cache key from path, mtime, size, and requested side."""
    try:
        st = os.stat(path)
        sig = f"{path}|{int(st.st_mtime_ns)}|{int(st.st_size)}|{int(size_key)}".encode(
            "utf-8", errors="ignore"
        )
    except OSError:
        sig = f"{path}|0|0|{int(size_key)}".encode("utf-8", errors="ignore")
    return hashlib.sha1(sig).hexdigest()


def _write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise


class _LRUCache:
    def __init__(self, capacity: int) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, bytes] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> bytes | None:
        """Return cached bytes for key, moving it to the MRU position."""
        item = self._data.get(key)
        if item is None:
            return None
        self._data.move_to_end(key)
        return item

    def put(self, key: str, data: bytes) -> None:
        """Insert or update `key`, evicting LRU entries when over capacity."""
        self._data[key] = data
        self._data.move_to_end(key)
        while len(self._data) > self._cap:
            self._data.popitem(last=False)


class ImageService:
    """Writes lazy/normal derivatives and serves cached display thumbnails."""

    def __init__(self, work_dir: str, settings: JsonSettings | None = None) -> None:
        self._work_path = Path(work_dir)
        self.lazy = _policy_from_settings(settings, LAZY)
        self.normal = _policy_from_settings(settings, NORMAL)
        self.thumbnail = _policy_from_settings(settings, THUMBNAIL)
        mem_cap = 256
        if settings is not None:
            mem_cap = settings.get_int("thumbnail_mem_cache", mem_cap)
        self._mem_cache = _LRUCache(mem_cap)

    def lazy_path(self, photo_id: str) -> Path:
        return self._work_path / lazy_src_for(photo_id)

    def normal_path(self, photo_id: str) -> Path:
        return self._work_path / normal_src_for(photo_id)

    def write_derivatives(self, photo_id: str, source_path: str) -> None:
        """Regenerate both derivative files of `photo_id` from `source_path`.

        Raises:
            OSError: if the source cannot be read or an output cannot be written.
            CodecError: if the source is not a decodable JPEG.
        """
        raw = Path(source_path).read_bytes()
        decoded = jpeg_codec.decode(raw)
        lazy = jpeg_codec.encode(decoded, self.lazy.quality, self.lazy.max_dimension)
        normal = jpeg_codec.encode(decoded, self.normal.quality, self.normal.max_dimension)
        _write_bytes_atomic(self.lazy_path(photo_id), lazy)
        _write_bytes_atomic(self.normal_path(photo_id), normal)
        # Same decode also refreshes the display thumbnail.
        thumb = jpeg_codec.encode(decoded, self.thumbnail.quality, self.thumbnail.max_dimension)
        self._mem_cache.put(_compute_cache_key(source_path, self.thumbnail.max_dimension), thumb)
        logger.debug(
            "Derived {} ({}x{}): lazy {} B, normal {} B",
            photo_id,
            decoded.size[0],
            decoded.size[1],
            len(lazy),
            len(normal),
        )

    def get_thumbnail(self, source_path: str) -> bytes | None:
        """Return display thumbnail bytes for `source_path`, None if undecodable."""
        key = _compute_cache_key(source_path, self.thumbnail.max_dimension)
        cached = self._mem_cache.get(key)
        if cached is not None:
            return cached
        try:
            raw = Path(source_path).read_bytes()
            thumb = jpeg_codec.derive(raw, self.thumbnail.quality, self.thumbnail.max_dimension)
        except (OSError, CodecError) as ex:
            logger.debug("Thumbnail failed for {}: {}", source_path, ex)
            return None
        self._mem_cache.put(key, thumb)
        return thumb
