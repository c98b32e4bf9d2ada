import json

import pytest

from cqschedule.errors import DecodeError
from cqschedule.models import PERIOD_TIMES, CourseInstance, decode_schedule


def test_decode_schedule(document) -> None:
    assert document.student_id == "2024210001"
    assert document.student_name == "李华"
    assert document.week1_monday == "2026-02-23T00:00:00+08:00"
    assert len(document.instances) == 5
    first = document.instances[0]
    assert first.course == "高等数学"
    assert first.periods == (1, 2)
    assert first.is_regular
    assert not document.instances[-1].is_regular
    assert not document.has_orientation_week


def test_instances_for_week(document) -> None:
    assert [i.course for i in document.instances_for_week(1)] == ["高等数学", "大学英语"]
    assert document.instances_for_week(7) == []


def test_periods_are_sorted() -> None:
    instance = CourseInstance.from_dict(
        {"course": "A", "week": 1, "day": 2, "periods": [4, 3], "start_time": "10:15", "end_time": "11:55"}
    )
    assert instance.periods == (3, 4)
    assert instance.first_period == 3
    assert instance.last_period == 4
    assert instance.span == 2
    assert instance.type == "常规"


@pytest.mark.parametrize(
    "override",
    [
        {"periods": []},
        {"periods": "12"},
        {"periods": {"1": 1, "2": 2}},
        {"periods": 3},
        {"day": 0},
        {"day": 8},
        {"week": -1},
        {"week": "x"},
    ],
)
def test_invalid_instance(payload, override) -> None:
    payload["instances"][0].update(override)
    with pytest.raises(DecodeError):
        decode_schedule(json.dumps(payload).encode())


def test_missing_field(payload) -> None:
    del payload["week_1_monday"]
    with pytest.raises(DecodeError):
        decode_schedule(json.dumps(payload).encode())


@pytest.mark.parametrize("data", [b"", b"not json", b"[1, 2]", b'{"instances": 3}', b"\xff\xfe"])
def test_decode_garbage(data: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_schedule(data)


def test_period_table() -> None:
    assert list(PERIOD_TIMES) == list(range(1, 13))
    assert PERIOD_TIMES[1] == ("08:00", "08:45")
    assert PERIOD_TIMES[12] == ("21:45", "22:30")
