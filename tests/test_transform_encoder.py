from __future__ import annotations

import io

import pytest
from PIL import Image

from preset_resizer import transform_encoder
from preset_resizer.errors import DecodeError, EncodeError
from preset_resizer.transform_encoder import (
    build_encoder_save_kwargs,
    encode_image,
    extension_for_format,
    format_from_mime,
    quality_to_pillow,
    read_dimensions,
    resolve_effective_format,
)


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def _fake_pipeline(monkeypatch, sizes):
    """decode を固定画像に、エンコード結果を指定サイズのバイト列に差し替える"""
    calls = []
    monkeypatch.setattr(transform_encoder, "decode_image", lambda _data: Image.new("RGB", (100, 80)))

    def fake_encode(image, output_format, quality):
        calls.append((image.size, output_format, quality))
        return b"\0" * sizes[len(calls) - 1]

    monkeypatch.setattr(transform_encoder, "_encode_frame", fake_encode)
    return calls


def test_format_from_mime():
    assert format_from_mime("image/jpeg") == "jpeg"
    assert format_from_mime("image/jpg") == "jpeg"
    assert format_from_mime("IMAGE/PNG") == "png"
    assert format_from_mime("image/webp") == "webp"
    assert format_from_mime("image/x-icon") is None


def test_resolve_effective_format_prefers_target():
    assert resolve_effective_format("image/png", "webp") == "webp"
    assert resolve_effective_format("image/png", "jpg") == "jpeg"
    assert resolve_effective_format("image/png", None) == "png"


def test_resolve_effective_format_rejects_unknown():
    with pytest.raises(EncodeError):
        resolve_effective_format("image/png", "heic")
    with pytest.raises(EncodeError):
        resolve_effective_format("image/x-icon", None)


def test_quality_to_pillow_scale():
    assert quality_to_pillow(0.92) == 92
    assert quality_to_pillow(0.375) == 38
    assert quality_to_pillow(0.0) == 1
    assert quality_to_pillow(2.0) == 100


def test_build_encoder_save_kwargs():
    assert build_encoder_save_kwargs("jpeg", 0.92)["quality"] == 92
    assert build_encoder_save_kwargs("webp", 0.5)["format"] == "WEBP"
    assert "quality" not in build_encoder_save_kwargs("png", 0.92)
    with pytest.raises(EncodeError):
        build_encoder_save_kwargs("avif", 0.92)


def test_extension_for_format():
    assert extension_for_format("jpeg") == "jpeg"
    assert extension_for_format("webp") == "webp"


def test_encode_resizes_by_longest_side(make_image_bytes):
    source = make_image_bytes((4000, 3000), "PNG")

    result = encode_image(source, "image/png", 1280, 960, "jpeg")

    output = _open(result)
    assert output.format == "JPEG"
    assert output.size == (1280, 960)


def test_encode_uses_single_max_dimension_constraint(make_image_bytes):
    source = make_image_bytes((4000, 3000), "PNG")

    # 1280x720 を要求しても長辺1280で縦横比を維持する
    result = encode_image(source, "image/png", 1280, 720, "webp")

    output = _open(result)
    assert output.format == "WEBP"
    assert output.size == (1280, 960)


def test_encode_never_upscales(make_image_bytes):
    source = make_image_bytes((500, 500), "JPEG")

    result = encode_image(source, "image/jpeg", 2000, 2000)

    output = _open(result)
    assert output.format == "JPEG"
    assert output.size == (500, 500)


def test_encode_keeps_original_format_when_target_unset(make_image_bytes):
    source = make_image_bytes((300, 200), "PNG")

    result = encode_image(source, "image/png", 150, 100)

    output = _open(result)
    assert output.format == "PNG"
    assert output.size == (150, 100)


def test_encode_rgba_to_jpeg_flattens_alpha(make_image_bytes):
    source = make_image_bytes((40, 40), "PNG", mode="RGBA", color=(0, 0, 0, 0))

    result = encode_image(source, "image/png", 40, 40, "jpeg")

    output = _open(result)
    assert output.mode == "RGB"
    assert output.getpixel((10, 10)) == pytest.approx((255, 255, 255), abs=2)


def test_encode_invalid_bytes_raises_decode_error():
    with pytest.raises(DecodeError):
        encode_image(b"definitely not an image", "image/png", 100, 100)


def test_corrective_pass_runs_once_with_estimated_quality(monkeypatch):
    calls = _fake_pipeline(monkeypatch, [800_000, 500_000])

    result = encode_image(b"x" * 2_000_000, "image/jpeg", 100, 80, "jpeg", 300_000)

    assert len(calls) == 2
    assert calls[0][2] == 0.92
    assert calls[1][2] == pytest.approx(0.375)
    assert calls[1][:2] == calls[0][:2]
    # 予算超過のままでも3回目は行わない
    assert len(result) == 500_000


def test_corrective_quality_is_capped(monkeypatch):
    calls = _fake_pipeline(monkeypatch, [300_001, 300_000])

    encode_image(b"x" * 2_000_000, "image/jpeg", 100, 80, "webp", 300_000)

    assert calls[1][2] == pytest.approx(300_000 / 300_001)
    assert calls[1][2] <= 0.92


def test_no_corrective_pass_when_source_is_already_small(monkeypatch):
    calls = _fake_pipeline(monkeypatch, [800_000])

    encode_image(b"x" * 200_000, "image/png", 100, 80, "png", 300_000)

    assert len(calls) == 1


def test_no_corrective_pass_within_budget(monkeypatch):
    calls = _fake_pipeline(monkeypatch, [250_000])

    encode_image(b"x" * 2_000_000, "image/png", 100, 80, "jpeg", 300_000)

    assert len(calls) == 1


def test_no_corrective_pass_without_budget(monkeypatch):
    calls = _fake_pipeline(monkeypatch, [800_000])

    encode_image(b"x" * 2_000_000, "image/png", 100, 80, "jpeg", None)

    assert len(calls) == 1


def test_corrective_pass_shrinks_real_jpeg(make_noisy_bytes):
    source = make_noisy_bytes((600, 400), "PNG")
    first = encode_image(source, "image/png", 600, 400, "jpeg")
    budget = len(first) // 3

    corrected = encode_image(source, "image/png", 600, 400, "jpeg", budget)

    assert len(corrected) < len(first)


def test_read_dimensions(make_image_bytes):
    assert read_dimensions(make_image_bytes((31, 17), "GIF", mode="P", color=0)) == (31, 17)
    with pytest.raises(DecodeError):
        read_dimensions(b"")
