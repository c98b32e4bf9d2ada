"""数据模型：CourseInstance, ScheduleDocument 以及节次时间表"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .errors import DecodeError


# 重邮每日 12 节课对应的标准时间（实际上课时间以接口返回为准）
PERIOD_TIMES: dict[int, tuple[str, str]] = {
    1: ("08:00", "08:45"),
    2: ("08:55", "09:40"),
    3: ("10:15", "11:00"),
    4: ("11:10", "11:55"),
    5: ("14:00", "14:45"),
    6: ("14:55", "15:40"),
    7: ("16:15", "17:00"),
    8: ("17:10", "17:55"),
    9: ("19:00", "19:45"),
    10: ("19:55", "20:40"),
    11: ("20:50", "21:35"),
    12: ("21:45", "22:30"),
}

WEEKDAY_NAMES: list[str] = ["一", "二", "三", "四", "五", "六", "日"]

# 课程类型为 "常规" 的是普通课，其余（考试、补课等）都视为特殊安排
REGULAR_TYPE = "常规"


@dataclass(frozen=True)
class CourseInstance:
    """某一周某一天的一次课"""

    course: str  # 课程名称
    teacher: str  # 授课教师
    week: int  # 第几周，0 表示开学前的预备周
    day: int  # 1=周一, 7=周日
    periods: tuple[int, ...]  # 占用的节次，升序
    start_time: str  # 实际上课时间 "HH:MM"
    end_time: str  # 实际下课时间 "HH:MM"
    location: str = ""
    type: str = REGULAR_TYPE

    @property
    def is_regular(self) -> bool:
        return self.type == REGULAR_TYPE

    @property
    def first_period(self) -> int:
        return self.periods[0]

    @property
    def last_period(self) -> int:
        return self.periods[-1]

    @property
    def span(self) -> int:
        """占用的节数"""
        return len(self.periods)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CourseInstance":
        """从接口返回的单条记录构造，并校验基本约束。

        Raises
        ------
        DecodeError
            字段缺失、类型不对或违反约束（节次为空、星期越界、周数为负）
        """
        if not isinstance(raw, dict):
            raise DecodeError(f"课程记录应为对象，实际为 {type(raw).__name__}")
        try:
            raw_periods = raw["periods"]
            if not isinstance(raw_periods, list):
                raise DecodeError(f"periods 字段应为数组，实际为 {type(raw_periods).__name__}")
            periods = tuple(sorted(int(p) for p in raw_periods))
            instance = cls(
                course=str(raw["course"]),
                teacher=str(raw.get("teacher") or ""),
                week=int(raw["week"]),
                day=int(raw["day"]),
                periods=periods,
                start_time=str(raw["start_time"]),
                end_time=str(raw["end_time"]),
                location=str(raw.get("location") or ""),
                type=str(raw.get("type") or REGULAR_TYPE),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"课程记录格式错误: {e!r}") from e

        if not instance.periods:
            raise DecodeError(f"课程 {instance.course} 的节次为空")
        if not 1 <= instance.day <= 7:
            raise DecodeError(f"课程 {instance.course} 的星期越界: {instance.day}")
        if instance.week < 0:
            raise DecodeError(f"课程 {instance.course} 的周数为负: {instance.week}")
        return instance

    def __str__(self) -> str:
        periods_str = ",".join(str(p) for p in self.periods)
        return (
            f"{self.course} 第{self.week}周 周{WEEKDAY_NAMES[self.day - 1]} "
            f"第{periods_str}节 {self.start_time}-{self.end_time}"
        )


@dataclass(frozen=True)
class ScheduleDocument:
    """一次成功获取到的完整课表，获取后不再修改，下次刷新整体替换"""

    student_id: str
    student_name: str
    academic_year: str
    semester: str
    week1_monday: str  # 第 1 周周一的时间戳字符串，保持接口原样
    instances: tuple[CourseInstance, ...] = field(default_factory=tuple)

    @property
    def has_orientation_week(self) -> bool:
        """是否存在第 0 周（开学前预备周）的课程"""
        return any(i.week == 0 for i in self.instances)

    def instances_for_week(self, week: int) -> list[CourseInstance]:
        return [i for i in self.instances if i.week == week]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ScheduleDocument":
        if not isinstance(raw, dict):
            raise DecodeError(f"课表应为 JSON 对象，实际为 {type(raw).__name__}")
        try:
            items = raw["instances"]
            if not isinstance(items, list):
                raise DecodeError("instances 字段应为数组")
            return cls(
                student_id=str(raw["student_id"]),
                student_name=str(raw["student_name"]),
                academic_year=str(raw["academic_year"]),
                semester=str(raw["semester"]),
                week1_monday=str(raw["week_1_monday"]),
                instances=tuple(CourseInstance.from_dict(item) for item in items),
            )
        except KeyError as e:
            raise DecodeError(f"课表缺少字段: {e}") from e


def decode_schedule(data: bytes) -> ScheduleDocument:
    """把接口返回（或缓存中）的原始字节解码为 ScheduleDocument。

    网络读取和缓存读取走同一条解码路径。

    Parameters
    ----------
    data : bytes
        UTF-8 编码的 JSON

    Returns
    -------
    ScheduleDocument

    Raises
    ------
    DecodeError
        不是合法 JSON 或结构不符
    """
    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"无法解析课表 JSON: {e}") from e
    return ScheduleDocument.from_dict(raw)
