"""設定ファイル・ログの保存先を決める。"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

APP_NAME = "PresetResizer"
CONFIG_DIR_ENV = "PRESET_RESIZER_CONFIG_DIR"
LOG_DIR_ENV = "PRESET_RESIZER_LOG_DIR"
PRESETS_FILE_NAME = "presets.json"

_APP_DIR_NAME_LC = "preset-resizer"


def get_config_dir(
    *,
    os_name: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """OSごとの設定ディレクトリを返す。環境変数で上書きできる。"""
    resolved_os_name = os_name or os.name
    resolved_env = os.environ if env is None else env
    resolved_home = home or Path.home()

    override = resolved_env.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if resolved_os_name == "nt":
        app_data = resolved_env.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return resolved_home / f".{_APP_DIR_NAME_LC}"

    config_home = resolved_env.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / _APP_DIR_NAME_LC
    return resolved_home / ".config" / _APP_DIR_NAME_LC


def get_presets_path(**kwargs) -> Path:
    return get_config_dir(**kwargs) / PRESETS_FILE_NAME


def get_log_dir(
    *,
    os_name: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """OSごとの標準ログディレクトリを返す。"""
    resolved_os_name = os_name or os.name
    resolved_env = os.environ if env is None else env
    resolved_home = home or Path.home()

    override = resolved_env.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if resolved_os_name == "nt":
        local_app_data = resolved_env.get("LOCALAPPDATA") or resolved_env.get("APPDATA")
        if local_app_data:
            return Path(local_app_data) / APP_NAME / "logs"
        return resolved_home / f".{_APP_DIR_NAME_LC}" / "logs"

    state_home = resolved_env.get("XDG_STATE_HOME")
    if state_home:
        return Path(state_home) / _APP_DIR_NAME_LC / "logs"

    return resolved_home / ".local" / "state" / _APP_DIR_NAME_LC / "logs"
