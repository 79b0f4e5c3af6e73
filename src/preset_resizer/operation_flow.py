from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class OperationScopeHooks:
    set_busy: Callable[[bool], None]
    on_begin: Callable[[], None]
    on_close: Callable[[], None]


class OperationScope:
    """処理中フラグを取得し、どの経路で抜けても解放する。"""

    def __init__(self, *, hooks: OperationScopeHooks, label: str = "") -> None:
        self._hooks = hooks
        self._label = label
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def label(self) -> str:
        return self._label

    def begin(self) -> None:
        if self._active:
            return
        self._hooks.set_busy(True)
        self._active = True
        self._hooks.on_begin()

    def close(self) -> None:
        if not self._active:
            return
        self._hooks.set_busy(False)
        self._active = False
        self._hooks.on_close()

    def __enter__(self) -> "OperationScope":
        try:
            self.begin()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False
