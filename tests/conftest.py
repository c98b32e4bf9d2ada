"""Shared fixtures: a sample schedule payload and an in-memory calendar store."""

import json
from datetime import datetime

import pytest

from cqschedule.calendar_store import AuthorizationStatus, CalendarEvent, CalendarStore
from cqschedule.models import decode_schedule


def make_instance(course, week, day, periods, start, end, type_="常规", teacher="张老师", location="2101"):
    return {
        "course": course,
        "teacher": teacher,
        "week": week,
        "day": day,
        "periods": periods,
        "start_time": start,
        "end_time": end,
        "location": location,
        "type": type_,
    }


@pytest.fixture
def payload() -> dict:
    return {
        "student_id": "2024210001",
        "student_name": "李华",
        "academic_year": "2025-2026",
        "semester": "2",
        "week_1_monday": "2026-02-23T00:00:00+08:00",
        "instances": [
            make_instance("高等数学", 1, 1, [1, 2], "08:00", "09:40"),
            make_instance("大学英语", 1, 3, [3, 4], "10:15", "11:55", teacher="王老师", location="3204"),
            make_instance("高等数学", 2, 1, [1, 2], "08:00", "09:40"),
            make_instance("线性代数", 3, 5, [6, 7], "14:55", "17:00"),
            make_instance("高等数学", 18, 4, [1, 2], "09:00", "11:00", type_="考试"),
        ],
    }


@pytest.fixture
def payload_bytes(payload) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


@pytest.fixture
def document(payload_bytes):
    return decode_schedule(payload_bytes)


class FakeCalendarStore(CalendarStore):
    """In-memory calendar store that records commits."""

    def __init__(self, status=AuthorizationStatus.GRANTED, default_alarm=30, fail_on_save=False, save_error=None):
        self.status = status
        self.default_alarm = default_alarm
        self.fail_on_save = fail_on_save
        self.save_error = save_error
        self.calendars: dict[str, dict[str, CalendarEvent]] = {}
        self.pending_removals: list[CalendarEvent] = []
        self.pending_saves: list[CalendarEvent] = []
        self.commits = 0
        self.consent_asked = 0

    def authorization_status(self):
        return self.status

    def request_access(self, consent):
        self.consent_asked += 1
        if consent():
            self.status = AuthorizationStatus.GRANTED
            return True
        self.status = AuthorizationStatus.DENIED
        return False

    def find_calendar(self, name):
        return name if name in self.calendars else None

    def create_calendar(self, name):
        self.calendars[name] = {}
        return name

    def events_between(self, calendar, start: datetime, end: datetime):
        return [e for e in self.calendars[calendar].values() if start <= e.start <= end]

    def new_event(self, calendar):
        event = CalendarEvent(calendar=calendar)
        if self.default_alarm:
            event.alarms.append(self.default_alarm)
        return event

    def remove_event(self, event):
        self.pending_removals.append(event)

    def save_event(self, event):
        if self.fail_on_save:
            raise OSError("disk full")
        if self.save_error is not None:
            raise self.save_error
        self.pending_saves.append(event)

    def commit(self):
        for event in self.pending_removals:
            self.calendars[event.calendar].pop(event.uid, None)
        for event in self.pending_saves:
            self.calendars[event.calendar][event.uid] = event
        self.pending_removals = []
        self.pending_saves = []
        self.commits += 1

    def events(self, calendar):
        return list(self.calendars.get(calendar, {}).values())


@pytest.fixture
def fake_store():
    return FakeCalendarStore()
