"""コマンドラインからの起動口。

``process`` で取り込み→変換→書き出しを一度に行い、
``presets`` でプリセットを管理する。
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from preset_resizer import __version__
from preset_resizer.app_paths import get_log_dir
from preset_resizer.errors import PersistenceError, PresetResizerError, describe_error
from preset_resizer.image_input import read_source_file
from preset_resizer.preset_store import PRESET_FORMATS, PresetFileStore, PresetRepository
from preset_resizer.runtime_logging import setup_logging
from preset_resizer.session import SessionStateMachine
from preset_resizer.text_presenter import comparison_summary, describe_preset, kb_to_bytes


def _build_arg_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI use."""
    p = argparse.ArgumentParser(
        prog="preset-resizer",
        description="プリセットに従って画像を1枚リサイズ / 再圧縮するツール",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--presets-file", type=Path, default=None, help="プリセットファイルの場所")
    p.add_argument("--verbose", "-v", action="count", default=0, help="詳細ログを増やす (重ね掛け可)")
    p.add_argument("--log-file", action="store_true", help="実行ログをログディレクトリに保存する")

    sub = p.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="画像を1枚変換して書き出す")
    process.add_argument("source", type=Path, help="入力画像")
    process.add_argument("-p", "--preset", default=None, help="使用するプリセットID (省略時はdefault)")
    process.add_argument("-o", "--output", type=Path, default=None, help="出力先ファイルまたはフォルダー")
    process.add_argument("-n", "--name", default=None, help="出力ファイル名 (拡張子なし)")

    presets = sub.add_parser("presets", help="プリセットを管理する")
    preset_sub = presets.add_subparsers(dest="preset_command", required=True)

    preset_sub.add_parser("list", help="プリセット一覧")

    add = preset_sub.add_parser("add", help="プリセットを追加")
    _add_preset_field_args(add, name_required=True)

    update = preset_sub.add_parser("update", help="プリセットを更新")
    update.add_argument("preset_id")
    _add_preset_field_args(update, name_required=False)

    delete = preset_sub.add_parser("delete", help="プリセットを削除")
    delete.add_argument("preset_id")

    move = preset_sub.add_parser("move", help="プリセットの並び順を変更")
    move.add_argument("from_index", type=int)
    move.add_argument("to_index", type=int)

    preset_sub.add_parser("reset", help="デフォルトのみに戻す")
    return p


def _add_preset_field_args(parser: argparse.ArgumentParser, *, name_required: bool) -> None:
    parser.add_argument("--name", required=name_required, help="プリセット名")
    parser.add_argument(
        "--format",
        choices=[*PRESET_FORMATS, "original"],
        default=None,
        help="出力形式 (original は元の形式を維持)",
    )
    parser.add_argument("--width", type=int, default=None, help="幅(px)。0で自動")
    parser.add_argument("--height", type=int, default=None, help="高さ(px)。0で自動")
    parser.add_argument("--target-kb", type=int, default=None, help="目標サイズ(KB)。0で制限なし")


def _preset_changes(args: argparse.Namespace, *, include_unset: bool) -> dict:
    changes: dict = {}
    if args.name is not None or include_unset:
        changes["name"] = args.name
    if args.format is not None:
        changes["format"] = None if args.format == "original" else args.format
    elif include_unset:
        changes["format"] = None
    for key, value in (("width", args.width), ("height", args.height)):
        if value is not None:
            changes[key] = value or None
        elif include_unset:
            changes[key] = None
    if args.target_kb is not None:
        changes["target_size"] = kb_to_bytes(args.target_kb) or None
    elif include_unset:
        changes["target_size"] = None
    return changes


def _run_process(args: argparse.Namespace, repository: PresetRepository) -> int:
    if args.preset:
        if repository.get(args.preset) is None:
            logger.error(f"プリセットが見つかりません: {args.preset}")
            return 1
        repository.select(args.preset)
    preset = repository.get_current()

    machine = SessionStateMachine()
    try:
        source = read_source_file(args.source)
    except PresetResizerError as e:
        logger.error(describe_error(e))
        return 1

    if not machine.load_original(source) or not machine.process(preset):
        error = machine.snapshot().error
        logger.error(error.message if error else "変換に失敗しました")
        return 1

    if args.name:
        machine.update_file_name(args.name)

    destination = args.output or args.source.parent
    # 入力ファイルを上書きしない
    if destination.is_dir():
        candidate = destination / (machine.suggested_file_name() or "")
        if candidate.resolve() == args.source.resolve():
            machine.update_file_name(f"{machine.snapshot().file_name_stem}_resized")
    elif destination.resolve() == args.source.resolve():
        logger.error(f"出力先が入力ファイルと同じです: {destination}")
        return 1
    try:
        written = machine.export_to(destination)
    except PresetResizerError as e:
        logger.error(describe_error(e))
        return 1

    summary = comparison_summary(machine.snapshot())
    print(f"{preset.name}: {summary.to_text() if summary else ''}")
    print(f"→ {written}")
    return 0


def _run_presets(args: argparse.Namespace, repository: PresetRepository) -> int:
    command = args.preset_command
    try:
        if command == "add":
            preset = repository.add(_preset_changes(args, include_unset=True))
            print(f"追加しました: {preset.id}")
        elif command == "update":
            repository.update(args.preset_id, _preset_changes(args, include_unset=False))
            print(f"更新しました: {args.preset_id}")
        elif command == "delete":
            repository.delete(args.preset_id)
        elif command == "move":
            repository.move(args.from_index, args.to_index)
        elif command == "reset":
            repository.reset()
    except PersistenceError as e:
        logger.error(describe_error(e))
        return 1
    except KeyError as e:
        logger.error(f"プリセットが見つかりません: {e.args[0]}")
        return 1
    except (ValueError, IndexError) as e:
        logger.error(f"無効な値: {e}")
        return 1

    for index, preset in enumerate(repository.presets):
        print(f"{index}: [{preset.id}] {preset.name} - {describe_preset(preset)}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI のエントリポイント"""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    console_level = "INFO"
    if args.verbose == 1:
        console_level = "DEBUG"
    elif args.verbose >= 2:
        console_level = "TRACE"

    setup_logging(console_level=console_level, log_dir=get_log_dir() if args.log_file else None)

    repository = PresetRepository(PresetFileStore(args.presets_file))
    repository.load()

    if args.command == "process":
        return _run_process(args, repository)
    return _run_presets(args, repository)


if __name__ == "__main__":
    sys.exit(main())
