"""日历导出：把课表整体替换写入指定名称的日历"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from .calendar_store import AuthorizationStatus, CalendarEvent, CalendarStore
from .errors import CalendarAuthDenied, CalendarError, CalendarWriteError
from .models import CourseInstance, WEEKDAY_NAMES
from .weeks import compute_event_date, parse_week1_monday

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_NAME = "课程表"

SETTINGS_HINT = "请在设置中开启日历权限以同步课表。"

# 删除旧事件的时间窗口：一年前到两年后
LOOKBEHIND = timedelta(days=365)
LOOKAHEAD = timedelta(days=730)

# 同一时间只允许一个导出，删除再重建的过程不能并发
_export_lock = threading.Lock()


@dataclass(frozen=True)
class ExportResult:
    calendar: str
    deleted: int
    created: int


def event_title(instance: CourseInstance) -> str:
    """非常规类型的课在标题后加上类型，例如 "高等数学 (考试)"。"""
    if instance.is_regular:
        return instance.course
    return f"{instance.course} ({instance.type})"


def event_notes(instance: CourseInstance) -> str:
    return f"教师: {instance.teacher}\n类型: {instance.type}\n周数: 第{instance.week}周"


def build_event(
    store: CalendarStore,
    calendar: str,
    instance: CourseInstance,
    week1_monday: date,
    first_alert: int | None = None,
    second_alert: int | None = None,
) -> CalendarEvent:
    """根据一次课构造日历事件。

    使用接口给出的实际上下课时间，而不是节次表的标准时间。
    """
    event = store.new_event(calendar)
    event.title = event_title(instance)
    event.location = instance.location
    event.notes = event_notes(instance)
    event.start = compute_event_date(week1_monday, instance.week, instance.day, instance.start_time)
    event.end = compute_event_date(week1_monday, instance.week, instance.day, instance.end_time)
    if event.end < event.start:
        # 下课时间无法解析时会退回零点，此时按零时长处理
        event.end = event.start

    # 清掉存储自动附加的默认提醒
    event.alarms = []
    for minutes in (first_alert, second_alert):
        if minutes is not None and minutes > 0:
            event.alarms.append(minutes)
    return event


def ensure_access(store: CalendarStore, consent: Optional[Callable[[], bool]] = None) -> None:
    """检查日历权限，未确定时向用户询问。

    Raises
    ------
    CalendarAuthDenied
        用户拒绝，或之前已经拒绝过
    """
    status = store.authorization_status()
    if status is AuthorizationStatus.GRANTED:
        return
    if status is AuthorizationStatus.DENIED:
        raise CalendarAuthDenied("日历权限已被拒绝", settings_hint=SETTINGS_HINT)

    if consent is None or not store.request_access(consent):
        raise CalendarAuthDenied("未获得日历权限", settings_hint=SETTINGS_HINT)


def export_schedule(
    store: CalendarStore,
    instances: Iterable[CourseInstance],
    week1_monday: str | date,
    first_alert: int | None = None,
    second_alert: int | None = None,
    calendar_name: str = DEFAULT_CALENDAR_NAME,
    now: datetime | None = None,
) -> ExportResult:
    """把课表同步到日历（整体替换）。

    1. 按名称查找日历，不存在则创建
    2. 删除窗口内的全部旧事件并先提交
    3. 为每次课创建事件，最后一次性提交

    删除和新增分两次提交：中途失败时日历可能是空的。

    Parameters
    ----------
    store : CalendarStore
        日历存储
    instances : Iterable[CourseInstance]
        全部课程
    week1_monday : str | date
        第 1 周周一，字符串时与课表接口中的格式相同
    first_alert, second_alert : int | None
        提前提醒的分钟数，为空或不大于 0 时不添加
    calendar_name : str
        目标日历名称
    now : datetime | None
        删除窗口的参照时间，默认为当前时间

    Returns
    -------
    ExportResult

    Raises
    ------
    DecodeError
        开学日期无法解析（此时不会删除任何事件）
    CalendarWriteError
        删除、写入或提交失败
    """
    if isinstance(week1_monday, str):
        week1_monday = parse_week1_monday(week1_monday)
    instances = list(instances)
    now = now or datetime.now()

    with _export_lock:
        try:
            calendar = store.find_calendar(calendar_name)
            if calendar is None:
                calendar = store.create_calendar(calendar_name)

            old_events = store.events_between(calendar, now - LOOKBEHIND, now + LOOKAHEAD)
            for event in old_events:
                store.remove_event(event)
            store.commit()
            logger.info("已删除日历 %s 中的 %d 个旧事件", calendar_name, len(old_events))

            for instance in instances:
                event = build_event(store, calendar, instance, week1_monday, first_alert, second_alert)
                store.save_event(event)
            store.commit()
        except CalendarError:
            raise
        except OSError as e:
            raise CalendarWriteError(f"写入日历失败: {e}") from e

    logger.info("已向日历 %s 写入 %d 个事件", calendar_name, len(instances))
    return ExportResult(calendar=calendar_name, deleted=len(old_events), created=len(instances))


class CalendarExporter:
    """在后台线程执行导出。单个工作线程，多次提交按顺序执行。"""

    def __init__(self, store: CalendarStore) -> None:
        self.store = store
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cqschedule-export")

    def run(
        self,
        instances: Iterable[CourseInstance],
        week1_monday: str | date,
        first_alert: int | None = None,
        second_alert: int | None = None,
        calendar_name: str = DEFAULT_CALENDAR_NAME,
        consent: Optional[Callable[[], bool]] = None,
    ) -> ExportResult:
        ensure_access(self.store, consent)
        return export_schedule(
            self.store,
            instances,
            week1_monday,
            first_alert=first_alert,
            second_alert=second_alert,
            calendar_name=calendar_name,
        )

    def submit(
        self,
        instances: Iterable[CourseInstance],
        week1_monday: str | date,
        first_alert: int | None = None,
        second_alert: int | None = None,
        calendar_name: str = DEFAULT_CALENDAR_NAME,
        consent: Optional[Callable[[], bool]] = None,
    ) -> Future:
        return self._executor.submit(
            self.run,
            list(instances),
            week1_monday,
            first_alert,
            second_alert,
            calendar_name,
            consent,
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def describe_event(instance: CourseInstance, week1_monday: date) -> str:
    """导出预览中的一行描述。"""
    start = compute_event_date(week1_monday, instance.week, instance.day, instance.start_time)
    return (
        f"{start:%Y-%m-%d} 周{WEEKDAY_NAMES[instance.day - 1]} "
        f"{instance.start_time}-{instance.end_time} {event_title(instance)}"
    )
