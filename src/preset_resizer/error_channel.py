"""表示側が読むための、直近1件のエラー。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from preset_resizer.errors import describe_error


@dataclass(frozen=True)
class ErrorRecord:
    kind: str
    message: str
    detail: str = ""

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorRecord":
        return cls(
            kind=getattr(error, "kind", type(error).__name__),
            message=describe_error(error),
            detail=str(error),
        )


class ErrorChannel:
    """エラーを1件だけ保持する。新しいエラーは古いものを置き換える。"""

    def __init__(self) -> None:
        self._current: Optional[ErrorRecord] = None

    @property
    def current(self) -> Optional[ErrorRecord]:
        return self._current

    def report(self, error: BaseException) -> ErrorRecord:
        self._current = ErrorRecord.from_exception(error)
        return self._current

    def clear(self) -> None:
        self._current = None
