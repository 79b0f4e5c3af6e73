"""変換プリセットの保存・読込・並べ替えを扱う。"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import json
from pathlib import Path
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from loguru import logger

from preset_resizer.app_paths import get_presets_path
from preset_resizer.errors import PersistenceError

DEFAULT_PRESET_ID = "default"
PRESET_FORMATS = ("webp", "jpeg", "png")
_UPDATABLE_FIELDS = ("name", "format", "width", "height", "target_size")
_FIELD_ALIASES = {"targetSize": "target_size"}


@dataclass
class Preset:
    id: str
    name: str
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    target_size: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "targetSize": self.target_size,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Preset":
        """保存形式の辞書から生成する。不正な値は ValueError。"""
        return validate_preset(
            cls(
                id=str(data.get("id", "")).strip(),
                name=data.get("name"),
                format=data.get("format"),
                width=data.get("width"),
                height=data.get("height"),
                target_size=data.get("targetSize", data.get("target_size")),
            )
        )


def builtin_default_preset() -> Preset:
    """組み込みのデフォルトプリセット。"""
    return Preset(
        id=DEFAULT_PRESET_ID,
        name="デフォルト",
        format="webp",
        width=1280,
        height=720,
        target_size=300 * 1024,
    )


def _optional_positive_int(value: Any, label: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{label}は正の整数を入力してください")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label}は整数を入力してください")
    if number != value and not isinstance(value, str):
        raise ValueError(f"{label}は整数を入力してください")
    if number <= 0:
        raise ValueError(f"{label}は正の整数を入力してください")
    return number


def validate_preset(preset: Preset) -> Preset:
    """各フィールドを検証し、正規化したプリセットを返す。"""
    if not preset.id:
        raise ValueError("プリセットIDが空です")
    name = "" if preset.name is None else str(preset.name).strip()
    if not name:
        raise ValueError("プリセット名を入力してください")

    output_format = preset.format
    if output_format is not None:
        output_format = str(output_format).strip().lower()
        if output_format == "jpg":
            output_format = "jpeg"
        if output_format not in PRESET_FORMATS:
            raise ValueError(f"未対応の出力形式です: {preset.format}")

    return Preset(
        id=preset.id,
        name=name,
        format=output_format,
        width=_optional_positive_int(preset.width, "幅"),
        height=_optional_positive_int(preset.height, "高さ"),
        target_size=_optional_positive_int(preset.target_size, "目標サイズ"),
    )


class PresetFileStore:
    """プリセット一覧をJSON配列として丸ごと読み書きする。"""

    def __init__(self, preset_path: Optional[Path] = None) -> None:
        self.preset_path = preset_path or get_presets_path()

    def exists(self) -> bool:
        return self.preset_path.exists()

    def read(self) -> list[dict[str, Any]]:
        try:
            with self.preset_path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"プリセットファイルを読み込めません: {self.preset_path}: {e}") from e
        if not isinstance(payload, list):
            raise PersistenceError(f"プリセットファイルの形式が不正です: {self.preset_path}")
        return payload

    def write(self, presets: Iterable[Preset]) -> None:
        payload = [preset.to_dict() for preset in presets]
        tmp_path = self.preset_path.with_suffix(f"{self.preset_path.suffix}.tmp")
        try:
            self.preset_path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            tmp_path.replace(self.preset_path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"一時ファイルの削除に失敗: {tmp_path}")
            raise PersistenceError(f"プリセットを保存できません: {self.preset_path}: {e}") from e


class PresetRepository:
    """プリセットの順序付きコレクションと選択中プリセットを管理する。

    変更操作はすべて保存に成功してからメモリ上の一覧に反映する。
    保存失敗時は ``PersistenceError`` を送出し、一覧は変更前のまま残る。
    """

    def __init__(
        self,
        store: Optional[PresetFileStore] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store or PresetFileStore()
        self._clock = clock
        self._presets: list[Preset] = [builtin_default_preset()]
        self._current_id = DEFAULT_PRESET_ID
        self._last_issued_ms = 0

    @property
    def presets(self) -> tuple[Preset, ...]:
        return tuple(replace(preset) for preset in self._presets)

    @property
    def current_id(self) -> str:
        return self._current_id

    @property
    def store(self) -> PresetFileStore:
        return self._store

    def load(self) -> tuple[Preset, ...]:
        """保存済みのプリセットを読み込む。

        ファイルがなければデフォルトで初期化して保存する。
        読めない・壊れている場合はファイルを上書きせずデフォルトを使う。
        """
        if not self._store.exists():
            defaults = [builtin_default_preset()]
            try:
                self._store.write(defaults)
            except PersistenceError as e:
                logger.warning(f"デフォルトプリセットの初期保存に失敗: {e}")
            self._presets = defaults
            self._ensure_selection()
            return self.presets

        try:
            raw_presets = self._store.read()
        except PersistenceError as e:
            logger.warning(f"プリセットの読み込みに失敗したためデフォルトを使用します: {e}")
            self._presets = [builtin_default_preset()]
            self._ensure_selection()
            return self.presets

        self._presets = _presets_from_payload(raw_presets)
        self._ensure_selection()
        logger.debug(f"プリセットを読み込みました: {len(self._presets)}件")
        return self.presets

    def get(self, preset_id: str) -> Optional[Preset]:
        for preset in self._presets:
            if preset.id == preset_id:
                return replace(preset)
        return None

    def get_current(self) -> Preset:
        """選択中のプリセット。見つからなければ先頭を返す。"""
        current = self.get(self._current_id)
        if current is not None:
            return current
        return replace(self._presets[0])

    def select(self, preset_id: str) -> None:
        self._current_id = preset_id

    def add(self, data: Mapping[str, Any]) -> Preset:
        """新しいIDを振って末尾に追加し、選択状態にする。"""
        changes = _normalize_changes(data)
        values = {key: changes.get(key) for key in _UPDATABLE_FIELDS}
        preset = validate_preset(Preset(id=self._issue_id(), **values))
        self._commit([*self._presets, preset])
        self._current_id = preset.id
        logger.info(f"プリセットを追加: {preset.id} ({preset.name})")
        return replace(preset)

    def update(self, preset_id: str, changes: Mapping[str, Any]) -> Preset:
        """指定IDのプリセットに変更内容をマージする。"""
        index = self._index_of(preset_id)
        if index is None:
            raise KeyError(preset_id)
        known = _normalize_changes(changes, current_id=preset_id)
        updated = validate_preset(replace(self._presets[index], **known))
        new_presets = list(self._presets)
        new_presets[index] = updated
        self._commit(new_presets)
        logger.info(f"プリセットを更新: {preset_id}")
        return replace(updated)

    def delete(self, preset_id: str) -> None:
        """プリセットを削除する。デフォルトは削除しない。"""
        if preset_id == DEFAULT_PRESET_ID:
            return
        if self._index_of(preset_id) is None:
            return
        self._commit([preset for preset in self._presets if preset.id != preset_id])
        if self._current_id == preset_id:
            self._current_id = DEFAULT_PRESET_ID
        logger.info(f"プリセットを削除: {preset_id}")

    def reorder(self, new_order: Sequence[Preset]) -> None:
        """一覧を並べ替え後の一覧で置き換える。要素の集合は変えられない。"""
        current_by_id = {preset.id: preset for preset in self._presets}
        new_ids = [preset.id for preset in new_order]
        if len(new_ids) != len(self._presets) or set(new_ids) != set(current_by_id):
            raise ValueError("並べ替えでプリセットの追加・削除はできません")
        for preset in new_order:
            if _field_values(preset) != _field_values(current_by_id[preset.id]):
                raise ValueError(f"並べ替えでプリセットの内容は変更できません: {preset.id}")
        self._commit([replace(current_by_id[preset_id]) for preset_id in new_ids])

    def move(self, from_index: int, to_index: int) -> None:
        """from_index の要素を to_index へ移動する。"""
        count = len(self._presets)
        if not (0 <= from_index < count and 0 <= to_index < count):
            raise IndexError(f"範囲外のインデックスです: {from_index} -> {to_index}")
        if from_index == to_index:
            return
        new_order = list(self._presets)
        new_order.insert(to_index, new_order.pop(from_index))
        self.reorder(new_order)

    def reset(self) -> None:
        """組み込みのデフォルトのみに戻す。"""
        self._commit([builtin_default_preset()])
        self._current_id = DEFAULT_PRESET_ID
        logger.info("プリセットをリセットしました")

    def _commit(self, new_presets: list[Preset]) -> None:
        self._store.write(new_presets)
        self._presets = new_presets

    def _index_of(self, preset_id: str) -> Optional[int]:
        for index, preset in enumerate(self._presets):
            if preset.id == preset_id:
                return index
        return None

    def _ensure_selection(self) -> None:
        if self._index_of(self._current_id) is None:
            self._current_id = self._presets[0].id

    def _issue_id(self) -> str:
        used = {preset.id for preset in self._presets}
        millis = max(int(self._clock() * 1000), self._last_issued_ms + 1)
        while f"preset_{millis}" in used:
            millis += 1
        self._last_issued_ms = millis
        return f"preset_{millis}"


def _normalize_changes(data: Mapping[str, Any], current_id: Optional[str] = None) -> dict[str, Any]:
    """入力のキーを内部のフィールド名へ揃える。未知のキーは ValueError。"""
    changes: dict[str, Any] = {}
    for key, value in data.items():
        if key == "id":
            if current_id is not None and value != current_id:
                raise ValueError(f"プリセットIDは変更できません: {current_id}")
            continue
        field = _FIELD_ALIASES.get(key, key)
        if field not in _UPDATABLE_FIELDS:
            raise ValueError(f"不明な項目です: {key}")
        changes[field] = value
    return changes


def _field_values(preset: Preset) -> tuple[Any, ...]:
    return tuple(getattr(preset, f.name) for f in fields(preset))


def _presets_from_payload(raw_presets: Sequence[Any]) -> list[Preset]:
    presets: list[Preset] = []
    seen: set[str] = set()
    for raw in raw_presets:
        if not isinstance(raw, dict):
            continue
        try:
            preset = Preset.from_dict(raw)
        except ValueError as e:
            logger.warning(f"不正なプリセットをスキップしました: {e}")
            continue
        if preset.id in seen:
            continue
        seen.add(preset.id)
        presets.append(preset)

    if DEFAULT_PRESET_ID not in seen:
        presets.insert(0, builtin_default_preset())
    return presets
