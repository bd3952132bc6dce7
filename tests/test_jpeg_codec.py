import io

from PIL import Image
import pytest

from conftest import EXIF_IFD, app_segment, build_exif, jpeg_bytes
from photag.core.errors import CodecError
from photag.infrastructure import jpeg_codec


def _open(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


def test_target_size_clamps_larger_side_and_truncates_other():
    assert jpeg_codec.target_size(4000, 3000, 600) == (600, 450)
    assert jpeg_codec.target_size(3000, 4000, 600) == (450, 600)
    # 1000 * 32 / 3000 = 10.67 -> truncated
    assert jpeg_codec.target_size(3000, 1000, 32) == (32, 10)


def test_target_size_keeps_images_within_bounds():
    assert jpeg_codec.target_size(300, 200, 600) == (300, 200)
    assert jpeg_codec.target_size(600, 450, 600) == (600, 450)


def test_target_size_never_collapses_to_zero():
    assert jpeg_codec.target_size(5000, 10, 32) == (32, 1)


def test_derive_resizes_with_aspect_ratio():
    out = jpeg_codec.derive(jpeg_bytes(size=(400, 300)), 85, 60)
    im = _open(out)
    assert im.format == "JPEG"
    assert im.size == (60, 45)


def test_derive_does_not_upscale():
    out = jpeg_codec.derive(jpeg_bytes(size=(40, 30)), 85, 600)
    assert _open(out).size == (40, 30)


def test_derive_output_is_baseline():
    out = jpeg_codec.derive(jpeg_bytes(), 75, 32)
    im = _open(out)
    assert not im.info.get("progressive")
    assert not im.info.get("progression")


def test_derive_preserves_exif_and_custom_segments():
    custom = app_segment(0xE5, b"PHOTAG\x00custom-payload")
    comment = app_segment(0xFE, b"shot on a tripod")
    src = jpeg_bytes(exif=build_exif(), extra_segments=[custom, comment])

    out = jpeg_codec.derive(src, 85, 100)

    exif = _open(out).getexif()
    assert exif.get(0x010F) == "Nikon"
    assert exif.get_ifd(EXIF_IFD)[36867] == "2023:05:14 18:42:07"
    markers = jpeg_codec.read_markers(out)
    payloads = {(m.marker, m.payload) for m in markers}
    assert (0xE5, b"PHOTAG\x00custom-payload") in payloads
    assert (0xFE, b"shot on a tripod") in payloads


def test_derive_writes_single_jfif_header():
    out = jpeg_codec.derive(jpeg_bytes(exif=build_exif()), 85, 100)
    assert out.count(b"JFIF\x00") == 1
    assert out.count(b"Exif\x00\x00") == 1


def test_markers_follow_encoder_header():
    custom = app_segment(0xE5, b"x" * 10)
    out = jpeg_codec.derive(jpeg_bytes(extra_segments=[custom]), 85, 100)
    assert out.startswith(b"\xff\xd8\xff\xe0")
    app0_len = int.from_bytes(out[4:6], "big")
    assert out[4 + app0_len : 4 + app0_len + 2] == b"\xff\xe5"


def test_decode_once_encode_many():
    decoded = jpeg_codec.decode(jpeg_bytes(size=(400, 300), exif=build_exif()))
    lazy = jpeg_codec.encode(decoded, 75, 32)
    normal = jpeg_codec.encode(decoded, 85, 200)
    assert _open(lazy).size == (32, 24)
    assert _open(normal).size == (200, 150)
    assert decoded.size == (400, 300)


def test_read_markers_skips_encoder_owned_segments():
    adobe = app_segment(0xEE, b"Adobe\x00\x64\x00\x00\x00\x00\x01")
    markers = jpeg_codec.read_markers(jpeg_bytes(extra_segments=[adobe]))
    assert all(m.marker != 0xEE for m in markers)
    assert all(not m.payload.startswith(b"JFIF") for m in markers)


def test_non_jpeg_input_raises_codec_error():
    buf = io.BytesIO()
    Image.new("RGB", (10, 10)).save(buf, "PNG")
    with pytest.raises(CodecError):
        jpeg_codec.derive(buf.getvalue(), 85, 32)
    with pytest.raises(CodecError):
        jpeg_codec.derive(b"not an image at all", 85, 32)


def test_truncated_jpeg_raises_codec_error():
    data = jpeg_bytes()
    with pytest.raises(CodecError):
        jpeg_codec.derive(data[: len(data) // 2], 85, 32)
    with pytest.raises(CodecError):
        jpeg_codec.derive(data[:5], 85, 32)


def test_invalid_parameters_are_rejected():
    decoded = jpeg_codec.decode(jpeg_bytes())
    with pytest.raises(ValueError):
        jpeg_codec.encode(decoded, 101, 32)
    with pytest.raises(ValueError):
        jpeg_codec.encode(decoded, 80, 0)


def _with_icc(mode: str, color) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (80, 60), color).save(buf, "JPEG", quality=90, icc_profile=b"fake profile")
    return buf.getvalue()


def test_icc_profile_kept_for_rgb_source():
    out = jpeg_codec.derive(_with_icc("RGB", (10, 20, 30)), 85, 40)
    assert b"ICC_PROFILE\x00" in out
    assert _open(out).info.get("icc_profile") == b"fake profile"


@pytest.mark.parametrize("mode,color", [("CMYK", (0, 50, 100, 0)), ("L", 128)])
def test_icc_profile_dropped_for_non_rgb_source(mode, color):
    raw = _with_icc(mode, color)
    assert b"ICC_PROFILE\x00" in raw
    out = jpeg_codec.derive(raw, 85, 40)
    assert b"ICC_PROFILE\x00" not in out
    assert _open(out).mode == "RGB"
