"""読み込むファイルを、名前・バイト列・MIMEタイプの組にする。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from preset_resizer.errors import DecodeError, InvalidInputType

_MIME_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}
_FALLBACK_MIME = "application/octet-stream"


@dataclass(frozen=True)
class SourceImage:
    name: str
    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def guess_mime_type(path: Union[str, Path]) -> str:
    """拡張子からMIMEタイプを推定する。"""
    return _MIME_BY_EXTENSION.get(Path(path).suffix.lower(), _FALLBACK_MIME)


def is_image_mime(mime_type: str) -> bool:
    return str(mime_type).strip().lower().startswith("image/")


def ensure_image_mime(name: str, mime_type: str) -> None:
    if not is_image_mime(mime_type):
        raise InvalidInputType(f"{name} ({mime_type or '不明な形式'})")


def strip_extension(file_name: str) -> str:
    """末尾の拡張子を1つだけ取り除く。"""
    name = Path(file_name).name
    head, dot, tail = name.rpartition(".")
    if dot and head and tail:
        return head
    return name


def read_source_file(path: Union[str, Path]) -> SourceImage:
    """ファイルを読み込み SourceImage を返す。画像でなければ InvalidInputType。"""
    source_path = Path(path)
    mime_type = guess_mime_type(source_path)
    ensure_image_mime(source_path.name, mime_type)
    try:
        data = source_path.read_bytes()
    except OSError as e:
        raise DecodeError(f"ファイルを読み込めません: {source_path}: {e}") from e
    return SourceImage(name=source_path.name, data=data, mime_type=mime_type)
