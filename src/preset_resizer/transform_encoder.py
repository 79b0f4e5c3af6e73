"""画像の変換パイプライン。

デコード・長辺基準のリサイズ・エンコードを行い、目標バイト数を超えた場合は
推定品質で1回だけ再エンコードする。
"""

from __future__ import annotations

import io
from typing import Any, Dict, Literal, Optional

from loguru import logger
from PIL import Image, UnidentifiedImageError

from preset_resizer.errors import DecodeError, EncodeError

OutputFormat = Literal["jpeg", "png", "webp", "gif", "bmp", "tiff"]

DEFAULT_QUALITY = 0.92

_FORMAT_BY_MIME: Dict[str, OutputFormat] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/pjpeg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}

_MIME_BY_FORMAT: Dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
}

_FORMAT_EXTENSIONS: Dict[str, str] = {
    "jpeg": "jpeg",
    "png": "png",
    "webp": "webp",
    "gif": "gif",
    "bmp": "bmp",
    "tiff": "tiff",
}


def format_from_mime(mime_type: str) -> Optional[OutputFormat]:
    """MIMEタイプから出力形式を返す。未対応ならNone。"""
    return _FORMAT_BY_MIME.get(str(mime_type).strip().lower())


def mime_for_format(output_format: str) -> str:
    return _MIME_BY_FORMAT.get(output_format, "application/octet-stream")


def extension_for_format(output_format: str) -> str:
    """書き出しファイル名に使う拡張子（ドットなし）。"""
    return _FORMAT_EXTENSIONS.get(output_format, output_format)


def resolve_effective_format(mime_type: str, target_format: Optional[str] = None) -> OutputFormat:
    """指定形式があればそれを、なければ元画像のMIMEから形式を決める。"""
    if target_format:
        requested = target_format.strip().lower()
        if requested == "jpg":
            requested = "jpeg"
        if requested not in _MIME_BY_FORMAT:
            raise EncodeError(f"未対応の出力形式です: {target_format}")
        return requested  # type: ignore[return-value]

    resolved = format_from_mime(mime_type)
    if resolved is None:
        raise EncodeError(f"元画像の形式を出力形式として扱えません: {mime_type}")
    return resolved


def quality_to_pillow(quality: float) -> int:
    """0-1の品質値をPillowの1-100に変換する。"""
    return max(1, min(100, int(round(quality * 100))))


def build_encoder_save_kwargs(output_format: str, quality: float) -> Dict[str, Any]:
    """出力形式に応じたエンコーダ設定を返す。"""
    pillow_quality = quality_to_pillow(quality)
    if output_format == "jpeg":
        return {"format": "JPEG", "quality": pillow_quality, "optimize": True}
    if output_format == "webp":
        return {"format": "WEBP", "quality": pillow_quality, "method": 4}
    if output_format == "png":
        # PNGはロスレスのため品質は反映されない
        return {"format": "PNG", "optimize": True}
    if output_format == "gif":
        return {"format": "GIF"}
    if output_format == "bmp":
        return {"format": "BMP"}
    if output_format == "tiff":
        return {"format": "TIFF", "compression": "tiff_lzw"}
    raise EncodeError(f"未対応の出力形式です: {output_format}")


def decode_image(image_bytes: bytes) -> Image.Image:
    """バイト列を画像としてデコードする。"""
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(str(e) or "画像として認識できません") from e
    return image


def read_dimensions(image_bytes: bytes) -> tuple[int, int]:
    """デコードして幅・高さを返す。"""
    with decode_image(image_bytes) as image:
        return image.size


def _prepare_for_format(image: Image.Image, output_format: str) -> Image.Image:
    if output_format == "jpeg" and image.mode in {"RGBA", "LA", "P"}:
        # 透過を持つ画像は白背景へ合成して保存する
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        background.alpha_composite(rgba)
        return background.convert("RGB")
    if output_format == "jpeg" and image.mode not in {"RGB", "L"}:
        return image.convert("RGB")
    if output_format == "webp" and image.mode not in {"RGB", "RGBA", "L"}:
        return image.convert("RGBA" if "A" in image.getbands() or image.mode == "P" else "RGB")
    if output_format in {"png", "bmp"} and image.mode == "CMYK":
        return image.convert("RGB")
    if output_format == "bmp" and image.mode not in {"RGB", "L", "P", "1"}:
        return image.convert("RGB")
    return image


def _encode_frame(image: Image.Image, output_format: str, quality: float) -> bytes:
    save_kwargs = build_encoder_save_kwargs(output_format, quality)
    buffer = io.BytesIO()
    try:
        _prepare_for_format(image, output_format).save(buffer, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"{output_format} へのエンコードに失敗しました: {e}") from e
    return buffer.getvalue()


def _resize_to_longest_side(image: Image.Image, max_dimension: int) -> Image.Image:
    if max_dimension <= 0:
        raise EncodeError(f"無効な出力サイズです: {max_dimension}")
    resized = image.copy()
    try:
        # thumbnail は縦横比を保ったまま縮小のみ行う
        resized.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
    except (OSError, ValueError) as e:
        raise EncodeError(f"リサイズに失敗しました: {e}") from e
    return resized


def encode_image(
    image_bytes: bytes,
    mime_type: str,
    out_width: int,
    out_height: int,
    target_format: Optional[str] = None,
    target_size: Optional[int] = None,
) -> bytes:
    """画像を変換してエンコード結果のバイト列を返す。

    リサイズは ``max(out_width, out_height)`` を長辺の上限とした縮小のみで、
    幅・高さを個別には合わせない。

    ``target_size`` を超え、かつ元ファイルも ``target_size`` より大きい場合に限り、
    ``min(0.92, target_size / 結果サイズ)`` の品質で1回だけ再エンコードする。
    再エンコード後も超過していてもそれ以上は調整しない。

    Raises:
        DecodeError: 元データを画像としてデコードできない
        EncodeError: 指定の形式・サイズで出力できない
    """
    effective_format = resolve_effective_format(mime_type, target_format)

    with decode_image(image_bytes) as source:
        resized = _resize_to_longest_side(source, max(out_width, out_height))

    result = _encode_frame(resized, effective_format, DEFAULT_QUALITY)
    logger.debug(
        f"エンコード: format={effective_format} size={resized.size} "
        f"quality={DEFAULT_QUALITY} bytes={len(result)}"
    )

    if target_size and len(result) > target_size and len(image_bytes) > target_size:
        corrected_quality = min(DEFAULT_QUALITY, target_size / len(result))
        logger.info(
            f"目標サイズ超過 ({len(result)} > {target_size})。品質 {corrected_quality:.3f} で再エンコードします"
        )
        result = _encode_frame(resized, effective_format, corrected_quality)
        if len(result) > target_size:
            logger.info(f"再エンコード後も目標サイズを超過しています: {len(result)} bytes")

    return result
