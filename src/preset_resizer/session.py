"""取り込み・調整・書き出しの3ステップを管理するセッション。

セッションの状態は ``SessionStateMachine`` だけが変更する。
他のコンポーネントは ``snapshot()`` で得た不変の値を読む。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Callable, List, Optional, Union

from loguru import logger

from preset_resizer.dimension_resolver import normalize_requested, resolve_dimensions
from preset_resizer.error_channel import ErrorChannel, ErrorRecord
from preset_resizer.errors import DecodeError, EncodeError, ExportError
from preset_resizer.image_export import suggested_file_name, write_image_bytes
from preset_resizer.image_input import SourceImage, ensure_image_mime, strip_extension
from preset_resizer.operation_flow import OperationScope, OperationScopeHooks
from preset_resizer.preset_store import Preset
from preset_resizer.transform_encoder import (
    encode_image,
    mime_for_format,
    read_dimensions,
    resolve_effective_format,
)


class Step(IntEnum):
    IMPORT = 0
    ADJUST = 1
    EXPORT = 2


@dataclass(frozen=True)
class OriginalImage:
    name: str
    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ProcessedImage:
    data: bytes
    mime_type: str
    format: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Session:
    """ある時点のセッション状態。"""

    original: Optional[OriginalImage] = None
    processed: Optional[ProcessedImage] = None
    file_name_stem: str = ""
    step: Step = Step.IMPORT
    is_processing: bool = False
    has_processed: bool = False
    error: Optional[ErrorRecord] = None


Encoder = Callable[..., bytes]
SessionListener = Callable[[Session], None]


class SessionStateMachine:
    """1枚の画像の取り込み→調整→書き出しを順に進める。"""

    def __init__(
        self,
        *,
        encoder: Encoder = encode_image,
        error_channel: Optional[ErrorChannel] = None,
    ) -> None:
        self._encoder = encoder
        self._errors = error_channel or ErrorChannel()
        self._listeners: List[SessionListener] = []
        self._original: Optional[OriginalImage] = None
        self._processed: Optional[ProcessedImage] = None
        self._file_name_stem = ""
        self._step = Step.IMPORT
        self._is_processing = False
        self._has_processed = False

    @property
    def step(self) -> Step:
        return self._step

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def error_channel(self) -> ErrorChannel:
        return self._errors

    def snapshot(self) -> Session:
        return Session(
            original=self._original,
            processed=self._processed,
            file_name_stem=self._file_name_stem,
            step=self._step,
            is_processing=self._is_processing,
            has_processed=self._has_processed,
            error=self._errors.current,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """状態変更の通知先を登録し、登録解除用の関数を返す。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load_original(self, source: SourceImage) -> bool:
        """元画像を取り込み、調整ステップへ進む。

        取り込みステップ以外では何もしない（False を返す）。
        画像以外のMIMEタイプは ``InvalidInputType`` を送出し、セッションは変更しない。
        デコードに失敗した場合はエラーを記録してステップはそのまま。
        """
        if self._step != Step.IMPORT:
            logger.debug(f"取り込みステップ以外での読み込みを無視: step={self._step.name}")
            return False

        ensure_image_mime(source.name, source.mime_type)

        try:
            width, height = read_dimensions(source.data)
        except DecodeError as e:
            logger.warning(f"画像のデコードに失敗: {source.name}: {e}")
            self._errors.report(e)
            self._notify()
            return False

        self._original = OriginalImage(
            name=source.name,
            data=source.data,
            mime_type=source.mime_type,
            width=width,
            height=height,
        )
        self._processed = None
        self._file_name_stem = strip_extension(source.name)
        self._has_processed = False
        self._errors.clear()
        self._step = Step.ADJUST
        logger.info(f"元画像を読み込みました: {source.name} {width}x{height} ({source.size} bytes)")
        self._notify()
        return True

    def process(self, preset: Preset) -> bool:
        """プリセットで変換を実行する。

        元画像がない、または処理中なら何もしない。成功すると書き出しステップへ進む。
        変換エラーは送出せずエラーチャネルに記録する。
        """
        if self._original is None or self._is_processing:
            return False

        original = self._original
        scope = OperationScope(
            hooks=OperationScopeHooks(
                set_busy=self._set_processing,
                on_begin=self._on_process_begin,
                on_close=self._notify,
            ),
            label=preset.name,
        )
        with scope:
            try:
                width, height = resolve_dimensions(
                    original.width,
                    original.height,
                    normalize_requested(preset.width),
                    normalize_requested(preset.height),
                )
                output_format = resolve_effective_format(original.mime_type, preset.format)
                data = self._encoder(
                    original.data,
                    original.mime_type,
                    width,
                    height,
                    preset.format,
                    normalize_requested(preset.target_size),
                )
                out_width, out_height = read_dimensions(data)
            except (DecodeError, EncodeError) as e:
                logger.warning(f"変換に失敗しました ({preset.name}): {e}")
                self._errors.report(e)
                return False

            self._processed = ProcessedImage(
                data=data,
                mime_type=mime_for_format(output_format),
                format=output_format,
                width=out_width,
                height=out_height,
            )
            self._has_processed = True
            self._step = Step.EXPORT
            logger.info(
                f"変換完了 ({preset.name}): {original.width}x{original.height} -> "
                f"{out_width}x{out_height}, {original.size} -> {len(data)} bytes"
            )
        return True

    def update_file_name(self, name: str) -> None:
        self._file_name_stem = name
        self._notify()

    def go_back(self) -> None:
        """1つ前のステップへ戻る。

        調整 → 取り込み: セッションをすべて破棄する。
        書き出し → 調整: 変換結果のみ破棄し、ファイル名を元画像から作り直す。
        """
        if self._step == Step.ADJUST:
            self._original = None
            self._processed = None
            self._file_name_stem = ""
            self._has_processed = False
            self._errors.clear()
            self._step = Step.IMPORT
        elif self._step == Step.EXPORT:
            self._processed = None
            self._file_name_stem = strip_extension(self._original.name) if self._original else ""
            self._has_processed = False
            self._errors.clear()
            self._step = Step.ADJUST
        else:
            return
        self._notify()

    def clear_error(self) -> None:
        self._errors.clear()
        self._notify()

    def suggested_file_name(self) -> Optional[str]:
        if self._processed is None:
            return None
        return suggested_file_name(self._file_name_stem, self._processed.format)

    def export_to(self, destination: Union[str, Path]) -> Path:
        """変換結果を書き出す。ディレクトリ指定時は推奨ファイル名で保存する。"""
        if self._processed is None:
            raise ExportError("書き出す画像がありません。先に変換を実行してください")
        target = Path(destination)
        if target.is_dir():
            target = target / suggested_file_name(self._file_name_stem, self._processed.format)
        return write_image_bytes(self._processed.data, target)

    def _set_processing(self, busy: bool) -> None:
        self._is_processing = busy

    def _on_process_begin(self) -> None:
        self._errors.clear()
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
