"""例外の定義と、ユーザー向けエラーメッセージの生成。"""

from __future__ import annotations

from PIL import UnidentifiedImageError


class PresetResizerError(Exception):
    """パッケージ共通の基底例外。"""

    kind = "error"


class InvalidInputType(PresetResizerError):
    """画像以外のファイルが渡された。"""

    kind = "invalid_input_type"


class DecodeError(PresetResizerError):
    """画像としてデコードできない。"""

    kind = "decode_error"


class EncodeError(PresetResizerError):
    """リサイズ・エンコードに失敗した。"""

    kind = "encode_error"


class PersistenceError(PresetResizerError):
    """プリセットの読み書きに失敗した。"""

    kind = "persistence_error"


class ExportError(PresetResizerError):
    """書き出し先への保存に失敗した。"""

    kind = "export_error"


def describe_error(error: BaseException) -> str:
    """
    例外から日本語のエラーメッセージを生成します

    Args:
        error: 例外オブジェクト

    Returns:
        str: 日本語エラーメッセージ
    """
    error_msg = str(error)

    if isinstance(error, InvalidInputType):
        return f"画像ファイルを選択してください: {error_msg}"
    if isinstance(error, DecodeError):
        return f"画像を読み込めませんでした: {error_msg}"
    if isinstance(error, EncodeError):
        return f"画像の変換に失敗しました: {error_msg}"
    if isinstance(error, PersistenceError):
        return f"プリセットの保存に失敗しました: {error_msg}"
    if isinstance(error, ExportError):
        return f"書き出しに失敗しました: {error_msg}"

    if isinstance(error, UnidentifiedImageError):
        return f"画像ファイルとして認識できません: {error_msg}"
    if isinstance(error, FileNotFoundError):
        return f"ファイルが見つかりません: {error_msg}"
    if isinstance(error, PermissionError):
        return f"アクセス権限がありません: {error_msg}"
    if isinstance(error, OSError):
        if error.errno == 28:  # ENOSPC
            return "ディスク容量が不足しています"
        return f"システムエラー: {error_msg}"
    if isinstance(error, MemoryError):
        return "メモリ不足エラー: 画像が大きすぎるか、使用可能なメモリが不足しています"
    if isinstance(error, ValueError):
        return f"無効な値: {error_msg}"

    return f"{type(error).__name__}: {error_msg}"
