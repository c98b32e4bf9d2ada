"""配置读取：config.yaml + 环境变量覆盖"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .cache import DEFAULT_CACHE_PATH
from .calendar_store import DEFAULT_CALENDAR_DIR, DEFAULT_TIMEZONE, load_zone
from .errors import CalendarWriteError
from .exporter import DEFAULT_CALENDAR_NAME
from .fetcher import DEFAULT_TIMEOUT, DEFAULT_URL_TEMPLATE
from .state import DEFAULT_NOTIFICATION_SECONDS, DEFAULT_REFRESH_INTERVAL

DEFAULT_CONFIG_PATH = Path.home() / ".cqschedule" / "config.yaml"

ENV_STUDENT_ID = "CQSCHEDULE_SID"
ENV_ENDPOINT = "CQSCHEDULE_ENDPOINT"

COLOR_POLICIES = ("golden", "wheel")


class ConfigError(ValueError):
    """配置文件格式错误"""


@dataclass
class CalendarConfig:
    name: str = DEFAULT_CALENDAR_NAME
    directory: str = str(DEFAULT_CALENDAR_DIR)
    timezone: str = DEFAULT_TIMEZONE
    first_alert: int | None = 15
    second_alert: int | None = None
    default_alarm: int | None = None


@dataclass
class AppConfig:
    student_id: str = ""
    endpoint: str = DEFAULT_URL_TEMPLATE
    cache_path: str = str(DEFAULT_CACHE_PATH)
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    notification_seconds: float = DEFAULT_NOTIFICATION_SECONDS
    timeout: float = DEFAULT_TIMEOUT
    color_policy: str = "golden"
    color_exclude_types: list[str] = field(default_factory=list)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _optional_int(value: Any, key: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} 应为整数（分钟）: {value!r}") from e


def _from_dict(raw: dict[str, Any]) -> AppConfig:
    config = AppConfig()
    try:
        if "student_id" in raw and raw["student_id"] is not None:
            config.student_id = str(raw["student_id"]).strip()
        if raw.get("endpoint"):
            config.endpoint = str(raw["endpoint"])
        if raw.get("cache_path"):
            config.cache_path = str(raw["cache_path"])
        if raw.get("refresh_interval") is not None:
            config.refresh_interval = float(raw["refresh_interval"])
        if raw.get("notification_seconds") is not None:
            config.notification_seconds = float(raw["notification_seconds"])
        if raw.get("timeout") is not None:
            config.timeout = float(raw["timeout"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"配置项格式错误: {e}") from e

    if raw.get("color_policy"):
        policy = str(raw["color_policy"])
        if policy not in COLOR_POLICIES:
            raise ConfigError(f"color_policy 只能是 {', '.join(COLOR_POLICIES)}: {policy!r}")
        config.color_policy = policy
    exclude = raw.get("color_exclude_types") or []
    if not isinstance(exclude, list):
        raise ConfigError("color_exclude_types 应为列表")
    config.color_exclude_types = [str(t) for t in exclude]

    cal_raw = raw.get("calendar") or {}
    if not isinstance(cal_raw, dict):
        raise ConfigError("calendar 应为字典")
    cal = config.calendar
    if cal_raw.get("name"):
        cal.name = str(cal_raw["name"])
    if cal_raw.get("directory"):
        cal.directory = str(cal_raw["directory"])
    if cal_raw.get("timezone"):
        cal.timezone = str(cal_raw["timezone"])
        try:
            load_zone(cal.timezone)
        except CalendarWriteError as e:
            raise ConfigError(f"calendar.timezone {e}") from e
    if "first_alert" in cal_raw:
        cal.first_alert = _optional_int(cal_raw["first_alert"], "calendar.first_alert")
    if "second_alert" in cal_raw:
        cal.second_alert = _optional_int(cal_raw["second_alert"], "calendar.second_alert")
    if "default_alarm" in cal_raw:
        cal.default_alarm = _optional_int(cal_raw["default_alarm"], "calendar.default_alarm")
    return config


def load_config(config_path: str | os.PathLike[str] | None = None) -> AppConfig:
    """读取配置文件，缺失的项使用默认值，再用环境变量覆盖。

    Parameters
    ----------
    config_path : str | None
        配置文件路径，默认为 ~/.cqschedule/config.yaml；文件不存在时全部使用默认值

    Returns
    -------
    AppConfig

    Raises
    ------
    ConfigError
        文件存在但格式不对
    """
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH
    raw: Any = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"配置文件 {path} 不是合法的 YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"配置文件 {path} 顶层应为字典")

    config = _from_dict(raw)

    sid = os.environ.get(ENV_STUDENT_ID, "").strip()
    if sid:
        config.student_id = sid
    endpoint = os.environ.get(ENV_ENDPOINT, "").strip()
    if endpoint:
        config.endpoint = endpoint
    return config


def save_config(config: AppConfig, config_path: str | os.PathLike[str] | None = None) -> Path:
    """把配置写回 YAML 文件（登录 / 退出时保存学号）。"""
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, allow_unicode=True, sort_keys=False)
    return path
