"""周次计算：由第 1 周周一和今天推算当前周，以及每次课的具体日期时间"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .errors import DecodeError

MIN_WEEK = 1
MAX_WEEK = 20

# 带时区的互联网时间格式，接受 "Z" 和 "+08:00"
PRIMARY_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
# 主格式失败后依次尝试的固定格式
FALLBACK_FORMATS: tuple[str, ...] = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


@dataclass(frozen=True)
class ResolvedWeekState:
    """当前显示周与真实周的对应关系（不持久化，每次按需重算）"""

    selected_week: int
    real_week: int
    is_current_week_real: bool


def parse_week1_monday(text: str) -> date:
    """解析第 1 周周一的时间戳字符串。

    取字符串中写明的日期，不做时区换算。

    Parameters
    ----------
    text : str
        例如 "2026-02-23T00:00:00+08:00" 或 "2026-02-23T00:00:00"

    Returns
    -------
    date

    Raises
    ------
    DecodeError
        主格式和所有备用格式都解析失败
    """
    text = (text or "").strip()
    for fmt in (PRIMARY_FORMAT, *FALLBACK_FORMATS):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise DecodeError(f"无法解析开学日期: {text!r}")


def days_between(week1_monday: date, today: date) -> int:
    """today 相对第 1 周周一的天数差，可以为负"""
    return (today - week1_monday).days


def real_week(week1_monday: date, today: date) -> int:
    """根据今天推算真实周次。

    开学后按 7 天一周计数（当天即第 1 周）；开学前 7 天内记为第 0 周
    （预备周），更早记为 -1（尚未开学）。
    """
    diff = days_between(week1_monday, today)
    if diff >= 0:
        return diff // 7 + 1
    if diff >= -7:
        return 0
    return -1


def expected_week(real: int, has_orientation: bool) -> int:
    """用户"此刻应该看"的周次"""
    if real >= MIN_WEEK:
        return min(real, MAX_WEEK)
    if has_orientation:
        return 0
    return MIN_WEEK


def week_range(has_orientation: bool) -> range:
    """可选择 / 可显示的周次范围"""
    low = 0 if has_orientation else MIN_WEEK
    return range(low, MAX_WEEK + 1)


def clamp_week(week: int, has_orientation: bool) -> int:
    weeks = week_range(has_orientation)
    return max(weeks.start, min(week, weeks.stop - 1))


def is_current_week_real(selected: int, real: int, has_orientation: bool) -> bool:
    return selected == expected_week(real, has_orientation)


def resolve(
    week1_monday: date,
    today: date,
    selected_week: int,
    has_orientation: bool,
) -> ResolvedWeekState:
    real = real_week(week1_monday, today)
    return ResolvedWeekState(
        selected_week=selected_week,
        real_week=real,
        is_current_week_real=is_current_week_real(selected_week, real, has_orientation),
    )


def combine(day: date, time_str: str) -> datetime:
    """把日期和 "HH:MM" 组合成 datetime，时间格式不对时退回当天零点。"""
    midnight = datetime(day.year, day.month, day.day)
    parts = (time_str or "").strip().split(":")
    if len(parts) < 2:
        return midnight
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return midnight
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return midnight
    return midnight.replace(hour=hour, minute=minute)


def event_day(week1_monday: date, week: int, day: int) -> date:
    return week1_monday + timedelta(days=(week - 1) * 7 + (day - 1))


def compute_event_date(week1_monday: date, week: int, day: int, time_str: str) -> datetime:
    """计算某周某天某时刻的具体时间。

    Parameters
    ----------
    week1_monday : date
        第 1 周周一
    week : int
        周次（第 0 周落在第 1 周之前的那一周）
    day : int
        1=周一, 7=周日
    time_str : str
        "HH:MM"

    Returns
    -------
    datetime
        不带时区的本地时间
    """
    return combine(event_day(week1_monday, week, day), time_str)
