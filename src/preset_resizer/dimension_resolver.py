"""出力サイズの決定。元画像より大きくはしない。"""

from __future__ import annotations

import math
from typing import Optional, Tuple


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_requested(value: Optional[int]) -> Optional[int]:
    """0以下の指定は未指定として扱う。"""
    if value is None:
        return None
    value = int(value)
    return value if value > 0 else None


def resolve_dimensions(
    original_width: int,
    original_height: int,
    requested_width: Optional[int] = None,
    requested_height: Optional[int] = None,
) -> Tuple[int, int]:
    """元サイズと指定値から出力サイズを返す。

    - 幅・高さ両方指定: 軸ごとに元サイズで頭打ち（縦横比は再計算しない）
    - 幅のみ: 元の縦横比から高さを算出
    - 高さのみ: 元の縦横比から幅を算出
    - 指定なし: 元サイズのまま
    """
    ratio = original_width / original_height

    if requested_width is not None and requested_height is not None:
        return min(requested_width, original_width), min(requested_height, original_height)

    if requested_width is not None:
        width = min(requested_width, original_width)
        height = _round_half_up(width / ratio)
        return width, min(height, original_height)

    if requested_height is not None:
        height = min(requested_height, original_height)
        width = _round_half_up(height * ratio)
        return min(width, original_width), height

    return original_width, original_height
