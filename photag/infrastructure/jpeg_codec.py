"""JPEG decode/resize/recompress with metadata marker passthrough.

Pillow does the pixel work. Metadata segments (APPn such as EXIF, XMP and ICC,
plus COM) are captured verbatim from the source stream before decoding and
spliced back into the encoded output right after its SOI/JFIF header, so the
derivative carries the same metadata as the original. The one exception is an
ICC profile from a non-RGB source, which would not describe the RGB output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import io

from PIL import Image

from photag.core.errors import CodecError

SOI = b"\xff\xd8"
_SOS = 0xDA
_EOI = 0xD9
_APP0 = 0xE0
_APP2 = 0xE2
_APP14 = 0xEE
_COM = 0xFE
# Markers that carry no length field.
_STANDALONE = {0x01, *range(0xD0, 0xD8)}

_RESAMPLING = getattr(Image, "Resampling", Image)
_LANCZOS = getattr(_RESAMPLING, "LANCZOS", getattr(_RESAMPLING, "BICUBIC", 3))


@dataclass(frozen=True)
class JpegMarker:
    """An opaque metadata segment: marker code (e.g. 0xE1) and its payload."""

    marker: int
    payload: bytes

    def to_bytes(self) -> bytes:
        length = (len(self.payload) + 2).to_bytes(2, "big")
        return b"\xff" + bytes([self.marker]) + length + self.payload


@dataclass
class DecodedJpeg:
    """Decoded RGB pixels plus the metadata segments of the source stream."""

    image: Image.Image
    markers: list[JpegMarker] = field(default_factory=list)

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


def _is_encoder_owned(marker: int, payload: bytes) -> bool:
    # JFIF APP0 and Adobe APP14 describe the encoding itself; the encoder
    # writes its own, so copying the source ones would contradict the output.
    if marker == _APP0 and payload.startswith((b"JFIF\x00", b"JFXX\x00")):
        return True
    return marker == _APP14 and payload.startswith(b"Adobe")


def _is_icc_profile(marker: JpegMarker) -> bool:
    return marker.marker == _APP2 and marker.payload.startswith(b"ICC_PROFILE\x00")


def read_markers(data: bytes) -> list[JpegMarker]:
    """Collect APPn and COM segments preceding the first scan.

    Raises:
        CodecError: if `data` is not a JPEG stream or a segment is truncated.
    """
    if not data.startswith(SOI):
        raise CodecError("not a JPEG stream (missing SOI)")
    markers: list[JpegMarker] = []
    pos = 2
    end = len(data)
    while pos < end:
        if data[pos] != 0xFF:
            raise CodecError(f"expected marker at offset {pos}")
        while pos < end and data[pos] == 0xFF:
            pos += 1
        if pos >= end:
            break
        code = data[pos]
        pos += 1
        if code in (_SOS, _EOI):
            break
        if code in _STANDALONE:
            continue
        if pos + 2 > end:
            raise CodecError("truncated segment length")
        seg_len = int.from_bytes(data[pos : pos + 2], "big")
        if seg_len < 2 or pos + seg_len > end:
            raise CodecError(f"truncated segment 0xFF{code:02X}")
        payload = data[pos + 2 : pos + seg_len]
        pos += seg_len
        if (_APP0 <= code <= 0xEF or code == _COM) and not _is_encoder_owned(code, payload):
            markers.append(JpegMarker(code, bytes(payload)))
    return markers


def inject_markers(encoded: bytes, markers: list[JpegMarker]) -> bytes:
    """Insert `markers` after the SOI and any leading APP0 of `encoded`."""
    if not markers:
        return encoded
    if not encoded.startswith(SOI):
        raise CodecError("encoder output is not a JPEG stream")
    pos = 2
    while pos + 4 <= len(encoded) and encoded[pos] == 0xFF and encoded[pos + 1] == _APP0:
        pos += 2 + int.from_bytes(encoded[pos + 2 : pos + 4], "big")
    return encoded[:pos] + b"".join(m.to_bytes() for m in markers) + encoded[pos:]


def target_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Fit (width, height) inside a `max_dimension` square, keeping aspect ratio.

    One scale factor is taken from the larger side and the other side is
    truncated. Images already within bounds keep their size (no upscaling).
    """
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    return max(1, width * max_dimension // longest), max(1, height * max_dimension // longest)


def decode(raw: bytes) -> DecodedJpeg:
    """Decode JPEG bytes to RGB pixels, keeping the metadata segments."""
    markers = read_markers(raw)
    try:
        with Image.open(io.BytesIO(raw)) as im:
            if im.format != "JPEG":
                raise CodecError(f"unsupported image format: {im.format}")
            im.load()
            source_mode = im.mode
            rgb = im.convert("RGB")
    except CodecError:
        raise
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as ex:
        raise CodecError(f"JPEG decode failed: {ex}") from ex
    # Metadata is re-injected from `markers`; keep Pillow from writing its own copy.
    rgb.info = {}
    if source_mode != "RGB":
        # An ICC profile describes the source color space (gray, CMYK, YCCK)
        # and would not match the RGB output.
        markers = [m for m in markers if not _is_icc_profile(m)]
    return DecodedJpeg(image=rgb, markers=markers)


def encode(decoded: DecodedJpeg, quality: int, max_dimension: int) -> bytes:
    """Resize `decoded` into bounds and encode as baseline JPEG at `quality`."""
    if not 0 <= quality <= 100:
        raise ValueError(f"quality must be within 0..100, got {quality}")
    if max_dimension < 1:
        raise ValueError(f"max_dimension must be positive, got {max_dimension}")
    img = decoded.image
    size = target_size(img.width, img.height, max_dimension)
    if size != img.size:
        img = img.resize(size, _LANCZOS)
        img.info = {}
    buf = io.BytesIO()
    try:
        img.save(buf, "JPEG", quality=quality, optimize=False, progressive=False)
    except (OSError, ValueError) as ex:
        raise CodecError(f"JPEG encode failed: {ex}") from ex
    return inject_markers(buf.getvalue(), decoded.markers)


def derive(raw: bytes, quality: int, max_dimension: int) -> bytes:
    """Decode `raw`, fit it inside `max_dimension` and re-encode at `quality`."""
    return encode(decode(raw), quality, max_dimension)
