"""Configuration persistence for Transcript Viewer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from transcript_viewer.sidebar import MAX_WIDTH_PERCENT, MIN_WIDTH_PERCENT

logger = logging.getLogger(__name__)

APP_DIR_NAME = "transcript-viewer"
CONFIG_FILE_NAME = "config.json"
DEFAULT_COMPACT_WIDTH = 100


@dataclass(frozen=True)
class AppConfig:
    """Immutable user configuration loaded from disk."""

    last_conversation_path: Optional[str] = None
    volume: int = 100
    preview_width: int = 50
    player_width: int = 35
    compact_width: int = DEFAULT_COMPACT_WIDTH
    relaxed_sandbox: bool = False
    export_dir: Optional[str] = None


def get_config_dir(app_name: str = APP_DIR_NAME) -> Path:
    """Return the per-user config directory, creating it when missing."""
    home = Path.home()
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        root = Path(appdata) if appdata else home / "AppData" / "Roaming"
    elif os.name == "posix" and _is_macos():
        root = home / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME") if os.name == "posix" else None
        root = Path(xdg) if xdg else home / ".config"
    directory = root / app_name
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def load_config() -> AppConfig:
    """Read the config file; anything unreadable yields the defaults."""
    path = get_config_path()
    if not path.exists():
        return AppConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to load config from %s", path)
        return AppConfig()
    if not isinstance(raw, dict):
        logger.warning("Ignoring config at %s: top level is not an object", path)
        return AppConfig()
    return _config_from_mapping(raw)


def save_config(cfg: AppConfig) -> None:
    """Write the config through a temp file so readers never see half a file."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_suffix(".tmp")
    staging.write_text(json.dumps(asdict(cfg), indent=2), encoding="utf-8")
    os.replace(staging, path)


def _is_macos() -> bool:
    uname = getattr(os, "uname", None)
    return uname is not None and uname().sysname == "Darwin"


def _get_bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    return value if isinstance(value, bool) else default


def _get_int(
    raw: dict[str, Any],
    key: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Read an integer, rejecting bools and other types, then clamp it."""
    value = raw.get(key)
    number = default
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    if min_value is not None and number < min_value:
        number = min_value
    if max_value is not None and number > max_value:
        number = max_value
    return number


def _get_optional_str(raw: dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        return None
    return value


def _config_from_mapping(raw: dict[str, Any]) -> AppConfig:
    min_width = int(MIN_WIDTH_PERCENT)
    max_width = int(MAX_WIDTH_PERCENT)
    return AppConfig(
        last_conversation_path=_get_optional_str(raw, "last_conversation_path"),
        volume=_get_int(raw, "volume", 100, min_value=0, max_value=100),
        preview_width=_get_int(
            raw, "preview_width", 50, min_value=min_width, max_value=max_width
        ),
        player_width=_get_int(
            raw, "player_width", 35, min_value=min_width, max_value=max_width
        ),
        compact_width=_get_int(
            raw, "compact_width", DEFAULT_COMPACT_WIDTH, min_value=0
        ),
        relaxed_sandbox=_get_bool(raw, "relaxed_sandbox", False),
        export_dir=_get_optional_str(raw, "export_dir"),
    )
