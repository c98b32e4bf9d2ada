from datetime import date

import pytest
from rich.console import Console

from cqschedule import display
from cqschedule.cache import ScheduleCache
from cqschedule.state import Notification, ScheduleState


@pytest.fixture
def recorder(monkeypatch) -> Console:
    console = Console(record=True, width=140, color_system=None)
    monkeypatch.setattr(display, "console", console)
    return console


@pytest.fixture
def state(tmp_path, document) -> ScheduleState:
    s = ScheduleState(ScheduleCache(tmp_path / "c.json"), today=lambda: date(2026, 2, 25))
    s._set_document(document)
    return s


def test_build_week_table(document) -> None:
    table = display.build_week_table(document, 1, {"大学英语": 0, "高等数学": 1})
    assert table.title == "第 1 周"
    assert len(table.columns) == 8
    assert table.row_count == 12


def test_display_week(recorder, state) -> None:
    display.display_week(state)
    text = recorder.export_text()
    assert "第1周" in text
    assert "本周" in text
    assert "高等数学" in text
    assert "大学英语" in text
    assert "线性代数" not in text


def test_display_week_marks_special(recorder, state) -> None:
    display.display_week(state, week=18)
    text = recorder.export_text()
    assert display.SPECIAL_MARK in text
    assert "考试" in text


def test_display_empty_week(recorder, state) -> None:
    display.display_week(state, week=9)
    assert "本周没有课程" in recorder.export_text()


def test_display_without_document(recorder, tmp_path) -> None:
    display.display_week(ScheduleState(ScheduleCache(tmp_path / "c.json")))
    assert "暂无课表数据" in recorder.export_text()


def test_display_user_info(recorder, document) -> None:
    display.display_user_info(document)
    text = recorder.export_text()
    assert "李华" in text
    assert "2026-02-23" in text
    assert "第 2 学期" in text


def test_display_course_detail(recorder, document) -> None:
    display.display_course_detail(document.instances[1])
    text = recorder.export_text()
    assert "王老师" in text
    assert "10:15 - 11:55" in text
    assert "3,4" in text


def test_display_notification(recorder) -> None:
    display.display_notification(Notification("课表同步成功", True))
    display.display_notification(Notification("隐藏", False))
    text = recorder.export_text()
    assert "课表同步成功" in text
    assert "隐藏" not in text
