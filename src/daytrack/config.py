"""应用配置加载。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from platformdirs import PlatformDirs

from daytrack.domain.timeline_types import DurationUnitStyle

APP_NAME = "daytrack"
DB_FILE_NAME = "daytrack.sqlite3"
TRUTHY_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """配置相关错误。"""


@dataclass(frozen=True, slots=True)
class AppConfig:
    """应用运行配置。"""

    db_path: Path
    timezone: tzinfo
    timezone_name: str
    same_weekday_only: bool = False
    duration_unit_style: DurationUnitStyle = "compact"


def load_app_config(
    db_path: str | None = None,
    timezone_name: str | None = None,
) -> AppConfig:
    """加载应用配置。"""

    load_dotenv(override=False)
    resolved_db_path = resolve_db_path(db_path)
    resolved_timezone, resolved_timezone_name = resolve_timezone(timezone_name)
    return AppConfig(
        db_path=resolved_db_path,
        timezone=resolved_timezone,
        timezone_name=resolved_timezone_name,
        same_weekday_only=_env_flag("DAYTRACK_SAME_WEEKDAY"),
        duration_unit_style=resolve_duration_unit_style(),
    )


def resolve_db_path(db_path: str | None = None) -> Path:
    """解析数据库路径，优先级：参数 > 环境变量 > 用户数据目录。"""

    if db_path:
        candidate = _normalize_path(db_path)
        if candidate.is_dir():
            raise ConfigError(f"Database path is a directory: {candidate}")
        candidate.parent.mkdir(parents=True, exist_ok=True)
        return candidate

    env_path = os.getenv("DAYTRACK_DB_PATH")
    if env_path:
        candidate = _normalize_path(env_path)
        candidate.parent.mkdir(parents=True, exist_ok=True)
        return candidate

    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_NAME, roaming=True)
    data_dir = Path(dirs.user_data_path)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / DB_FILE_NAME


def resolve_timezone(timezone_name: str | None = None) -> tuple[tzinfo, str]:
    """解析时区，默认使用系统时区。"""

    timezone_name = timezone_name or os.getenv("DAYTRACK_TIMEZONE")
    if timezone_name:
        try:
            zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {timezone_name}") from exc
        return zone, timezone_name

    local_timezone = datetime.now().astimezone().tzinfo
    if local_timezone is None:
        raise ConfigError("Unable to determine system timezone.")

    zone_key = getattr(local_timezone, "key", None)
    if isinstance(zone_key, str) and zone_key:
        return local_timezone, zone_key

    zone_name = datetime.now().astimezone().tzname() or "local"
    return local_timezone, zone_name


def resolve_duration_unit_style() -> DurationUnitStyle:
    """解析时长单位风格。"""

    value = os.getenv("DAYTRACK_DURATION_UNITS", "compact").strip().lower()
    if value in {"compact", "short", "dhm"}:
        return "compact"
    if value in {"cn", "zh", "chinese"}:
        return "cn"
    if value in {"en", "english", "words"}:
        return "en"
    return "compact"


def _env_flag(name: str) -> bool:
    raw_value = os.getenv(name, "0").strip().lower()
    return raw_value in TRUTHY_VALUES


def _normalize_path(raw_path: str) -> Path:
    """标准化路径。"""

    return Path(raw_path).expanduser().resolve()
