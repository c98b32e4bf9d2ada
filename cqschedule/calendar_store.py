"""日历存储：日历事件的读写接口，以及基于 .ics 文件目录的实现"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ics import Calendar, Event
from ics.alarm import DisplayAlarm

from .errors import CalendarWriteError

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_DIR = Path.home() / ".cqschedule" / "calendars"
DEFAULT_TIMEZONE = "Asia/Shanghai"


class AuthorizationStatus(Enum):
    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class CalendarEvent:
    """日历中的一个事件。start / end 为不带时区的本地时间，alarms 为提前提醒的分钟数"""

    calendar: str
    title: str = ""
    location: str = ""
    notes: str = ""
    start: datetime | None = None
    end: datetime | None = None
    alarms: list[int] = field(default_factory=list)
    uid: str = field(default_factory=lambda: f"{uuid.uuid4()}@cqschedule")


class CalendarStore(ABC):
    """外部日历存储。删除和新增先暂存，调用 commit() 后才真正生效。"""

    @abstractmethod
    def authorization_status(self) -> AuthorizationStatus:
        ...

    @abstractmethod
    def request_access(self, consent: Callable[[], bool]) -> bool:
        """权限未确定时询问用户，返回是否获得授权。"""

    @abstractmethod
    def find_calendar(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    def create_calendar(self, name: str) -> str:
        ...

    @abstractmethod
    def events_between(self, calendar: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        ...

    def new_event(self, calendar: str) -> CalendarEvent:
        return CalendarEvent(calendar=calendar)

    @abstractmethod
    def remove_event(self, event: CalendarEvent) -> None:
        ...

    @abstractmethod
    def save_event(self, event: CalendarEvent) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...


def load_zone(name: str) -> ZoneInfo:
    """按 IANA 名称取时区，名称无效时抛出 CalendarWriteError。"""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise CalendarWriteError(f"无效的时区: {name!r}") from e


def _safe_filename(name: str) -> str:
    cleaned = re.sub(r'[\\/:*?"<>|\s]+', "_", name).strip("._")
    return cleaned or "calendar"


class IcsCalendarStore(CalendarStore):
    """每个日历对应目录下的一个 .ics 文件。

    权限对应目录状态：目录不存在为未确定，存在且可写为已授权，只读为已拒绝。
    """

    def __init__(
        self,
        directory: str | os.PathLike[str] = DEFAULT_CALENDAR_DIR,
        timezone: str = DEFAULT_TIMEZONE,
        default_alarm_minutes: int | None = None,
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.timezone = timezone
        self._zone = load_zone(timezone)
        self.default_alarm_minutes = default_alarm_minutes
        self._calendars: dict[str, dict[str, CalendarEvent]] = {}
        self._dirty: set[str] = set()

    # -- 权限 ------------------------------------------------------------

    def authorization_status(self) -> AuthorizationStatus:
        if not self.directory.exists():
            return AuthorizationStatus.NOT_DETERMINED
        if self.directory.is_dir() and os.access(self.directory, os.W_OK):
            return AuthorizationStatus.GRANTED
        return AuthorizationStatus.DENIED

    def request_access(self, consent: Callable[[], bool]) -> bool:
        status = self.authorization_status()
        if status is AuthorizationStatus.GRANTED:
            return True
        if status is AuthorizationStatus.DENIED:
            return False
        if not consent():
            return False
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("无法创建日历目录 %s: %s", self.directory, e)
            return False
        return True

    # -- 日历 ------------------------------------------------------------

    def path_for(self, name: str) -> Path:
        return self.directory / f"{_safe_filename(name)}.ics"

    def find_calendar(self, name: str) -> Optional[str]:
        if name in self._calendars:
            return name
        path = self.path_for(name)
        if not path.is_file():
            return None
        self._calendars[name] = {e.uid: e for e in self._read(name, path)}
        return name

    def create_calendar(self, name: str) -> str:
        self._calendars[name] = {}
        self._dirty.add(name)
        self.commit()
        logger.info("已创建日历 %s", self.path_for(name))
        return name

    def _events(self, calendar: str) -> dict[str, CalendarEvent]:
        if self.find_calendar(calendar) is None:
            raise CalendarWriteError(f"日历不存在: {calendar}")
        return self._calendars[calendar]

    # -- 事件 ------------------------------------------------------------

    def events_between(self, calendar: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        return [
            e
            for e in self._events(calendar).values()
            if e.start is not None and start <= e.start <= end
        ]

    def new_event(self, calendar: str) -> CalendarEvent:
        event = CalendarEvent(calendar=calendar)
        if self.default_alarm_minutes:
            event.alarms.append(self.default_alarm_minutes)
        return event

    def remove_event(self, event: CalendarEvent) -> None:
        self._events(event.calendar).pop(event.uid, None)
        self._dirty.add(event.calendar)

    def save_event(self, event: CalendarEvent) -> None:
        if event.start is None or event.end is None:
            raise CalendarWriteError(f"事件 {event.title} 缺少开始或结束时间")
        self._events(event.calendar)[event.uid] = event
        self._dirty.add(event.calendar)

    def commit(self) -> None:
        for name in sorted(self._dirty):
            self._write(name, self.path_for(name), self._calendars.get(name, {}).values())
        self._dirty.clear()

    # -- .ics 读写 -------------------------------------------------------

    def _read(self, name: str, path: Path) -> list[CalendarEvent]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CalendarWriteError(f"无法读取日历 {path}: {e}") from e
        if not text.strip():
            return []
        events = []
        for ev in Calendar(text).events:
            alarms = [
                int(-alarm.trigger.total_seconds() // 60)
                for alarm in ev.alarms
                if isinstance(alarm.trigger, timedelta)
            ]
            events.append(
                CalendarEvent(
                    calendar=name,
                    title=ev.name or "",
                    location=ev.location or "",
                    notes=ev.description or "",
                    start=ev.begin.to(self.timezone).naive,
                    end=ev.end.to(self.timezone).naive,
                    alarms=alarms,
                    uid=ev.uid,
                )
            )
        return events

    def _to_ics_event(self, event: CalendarEvent) -> Event:
        return Event(
            name=event.title,
            begin=event.start.replace(tzinfo=self._zone),
            end=event.end.replace(tzinfo=self._zone),
            uid=event.uid,
            description=event.notes or None,
            location=event.location or None,
            alarms=[
                DisplayAlarm(trigger=timedelta(minutes=-minutes), display_text=event.title)
                for minutes in event.alarms
            ],
        )

    def _write(self, name: str, path: Path, events) -> None:
        cal = Calendar(events=[self._to_ics_event(e) for e in events])
        content = "".join(cal.serialize_iter())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content.encode("utf-8"))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CalendarWriteError(f"无法写入日历 {path}: {e}") from e
        logger.debug("日历 %s 已写入 %s", name, path)
