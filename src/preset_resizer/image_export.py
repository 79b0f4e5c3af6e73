"""変換結果の書き出し。"""

from __future__ import annotations

import os
from pathlib import Path
import time
from typing import Union
import uuid

from loguru import logger

from preset_resizer.errors import ExportError
from preset_resizer.transform_encoder import extension_for_format

DEFAULT_STEM = "image"


def suggested_file_name(stem: str, output_format: str) -> str:
    """``{stem}.{拡張子}`` 形式の保存ファイル名を返す。"""
    cleaned = stem.strip() or DEFAULT_STEM
    return f"{cleaned}.{extension_for_format(output_format)}"


def _build_temp_save_path(target_path: Path) -> Path:
    """同一ディレクトリ内の一時保存パスを作る。"""
    base_name = target_path.name or "preset_output"
    token = f"{os.getpid()}_{time.time_ns()}_{uuid.uuid4().hex[:10]}"
    return target_path.with_name(f".{base_name}.{token}.tmp")


def write_image_bytes(data: bytes, destination: Union[str, Path]) -> Path:
    """一時ファイル経由で書き込み、壊れた最終ファイルを残さない。

    書き込めない場合（保存先が既存ディレクトリの場合を含む）は ExportError。
    """
    final_path = Path(destination)
    tmp_path = _build_temp_save_path(final_path)
    try:
        final_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(data)
        os.replace(str(tmp_path), str(final_path))
    except OSError as e:
        raise ExportError(f"{final_path}: {e}") from e
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.warning(f"一時保存ファイルの削除に失敗: {tmp_path}")

    logger.info(f"書き出し完了: {final_path} ({len(data)} bytes)")
    return final_path
