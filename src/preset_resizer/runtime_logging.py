"""ログ出力の設定。

``log_dir`` を指定すると実行ごとに ``run_YYYYMMDD_HHMMSS.log`` を作る。
古い実行ログの整理は loguru の retention に任せ、ファイルシンクを閉じたとき
（``logger.remove()`` やプロセス終了時）に保持日数・保持件数を超えた分を削除する。
"""

from __future__ import annotations

import os
from pathlib import Path
import re
import sys
import time
from typing import Callable, List, Optional

from loguru import logger

DEFAULT_RETENTION_DAYS = 30
DEFAULT_MAX_FILES = 100
RUN_LOG_TEMPLATE = "run_{time:YYYYMMDD_HHmmss}.log"

_RUN_LOG_NAME = re.compile(r"^run_\d{8}_\d{6}\.log$")
_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{function}</cyan>: <white>{message}</white>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}: {message}"


def run_log_retention(
    retention_days: int = DEFAULT_RETENTION_DAYS,
    max_files: int = DEFAULT_MAX_FILES,
    *,
    clock: Callable[[], float] = time.time,
) -> Callable[[List[str]], None]:
    """loguru の ``retention`` に渡す削除関数を返す。

    loguru が見つけたファイルのうち実行ログ名のものだけを対象にし、
    ``retention_days`` より古いもの、新しい順で ``max_files`` 件目以降のものを消す。
    ``max_files`` が0以下なら件数での削除はしない。
    """

    def retain(paths: List[str]) -> None:
        cutoff = clock() - max(0, retention_days) * 86400
        run_logs = []
        for path in paths:
            if not _RUN_LOG_NAME.match(os.path.basename(path)):
                continue
            try:
                run_logs.append((os.stat(path).st_mtime, path))
            except OSError:
                continue

        run_logs.sort(reverse=True)
        for index, (modified_at, path) in enumerate(run_logs):
            over_count = max_files > 0 and index >= max_files
            if modified_at < cutoff or over_count:
                try:
                    os.remove(path)
                except OSError:
                    continue

    return retain


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Optional[Path] = None,
    *,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    max_files: int = DEFAULT_MAX_FILES,
) -> None:
    """ロギングの設定を行います

    Args:
        console_level: 標準エラー出力のログレベル
        file_level: 実行ログファイルのログレベル
        log_dir: 実行ログの保存先。None ならファイルには出力しない
        retention_days: 実行ログの保持日数
        max_files: 実行ログの保持件数
    """
    logger.remove()  # デフォルト設定を削除
    logger.add(sys.stderr, format=_CONSOLE_FORMAT, colorize=True, level=console_level)
    if log_dir is None:
        return

    logger.add(
        str(Path(log_dir) / RUN_LOG_TEMPLATE),
        format=_FILE_FORMAT,
        encoding="utf-8",
        level=file_level,
        retention=run_log_retention(retention_days, max_files),
    )
