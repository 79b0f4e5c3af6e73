"""Text helpers for preset lists, step labels and before/after summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from preset_resizer.preset_store import Preset
from preset_resizer.session import Session, Step

_STEP_LABELS = {
    Step.IMPORT: ("取り込み", "画像を選択"),
    Step.ADJUST: ("調整", "プリセットを設定"),
    Step.EXPORT: ("書き出し", "結果を保存"),
}


def format_file_size(size_in_bytes: Optional[float]) -> str:
    """Return a human readable size such as ``1.2 MB``."""
    if not size_in_bytes:
        return "0 B"
    size = float(size_in_bytes)
    unit = "B"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0 or unit == "GB":
            break
        size /= 1024.0
    if unit == "B":
        return f"{int(size)} B"
    return f"{size:.1f} {unit}"


def kb_to_bytes(value_kb: Optional[int]) -> Optional[int]:
    """Target sizes are entered in KB and stored in bytes."""
    if value_kb is None:
        return None
    return int(value_kb) * 1024


def bytes_to_kb(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return int(round(value / 1024))


def step_label(step: Step) -> str:
    title, description = _STEP_LABELS[Step(step)]
    return f"{int(step) + 1}. {title}（{description}）"


def describe_preset(preset: Preset) -> str:
    """One-line summary: dimensions, format and size budget."""
    width = f"幅{preset.width}" if preset.width else "幅自動"
    height = f"高さ{preset.height}" if preset.height else "高さ自動"
    output_format = preset.format.upper() if preset.format else "元の形式"
    budget = f"{format_file_size(preset.target_size)}以下" if preset.target_size else "サイズ制限なし"
    return f"{width} × {height} · {output_format} · {budget}"


@dataclass(frozen=True)
class ComparisonSummary:
    original_size: int
    processed_size: int
    original_dimensions: tuple[int, int]
    processed_dimensions: tuple[int, int]

    @property
    def reduction_rate(self) -> float:
        """Size reduction in percent (negative when the result grew)."""
        if self.original_size == 0:
            return 0.0
        return (self.original_size - self.processed_size) / self.original_size * 100

    def to_text(self) -> str:
        ow, oh = self.original_dimensions
        pw, ph = self.processed_dimensions
        return (
            f"{ow}x{oh} → {pw}x{ph} / "
            f"{format_file_size(self.original_size)} → {format_file_size(self.processed_size)} "
            f"({self.reduction_rate:.1f}% 削減)"
        )


def comparison_summary(session: Session) -> Optional[ComparisonSummary]:
    """Before/after numbers for the preview, or None until processing succeeded."""
    if session.original is None or session.processed is None:
        return None
    return ComparisonSummary(
        original_size=session.original.size,
        processed_size=session.processed.size,
        original_dimensions=(session.original.width, session.original.height),
        processed_dimensions=(session.processed.width, session.processed.height),
    )
