import pytest
import requests
import yaml
from click.testing import CliRunner

from cqschedule import fetcher
from cqschedule.config import ENV_ENDPOINT, ENV_STUDENT_ID
from cqschedule.main import cli


class FakeResponse:
    def __init__(self, content: bytes) -> None:
        self.content = content

    def raise_for_status(self) -> None:
        pass


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_STUDENT_ID, raising=False)
    monkeypatch.delenv(ENV_ENDPOINT, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "student_id": "2024210001",
                "cache_path": str(tmp_path / "cache.json"),
                "notification_seconds": 0,
                "calendar": {"directory": str(tmp_path / "calendars"), "first_alert": 15},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def online(monkeypatch, payload_bytes):
    monkeypatch.setattr(fetcher.requests, "get", lambda url, **kw: FakeResponse(payload_bytes))


@pytest.fixture
def offline(monkeypatch):
    def mock_get(url, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(fetcher.requests, "get", mock_get)


def run(config_path, *args):
    return CliRunner().invoke(cli, ["--config", str(config_path), *args])


def test_refresh_and_show(config_path, online) -> None:
    result = run(config_path, "refresh")
    assert result.exit_code == 0, result.output
    assert "课表同步成功" in result.output
    assert "李华" in result.output

    result = run(config_path, "show", "--week", "1", "--offline")
    assert result.exit_code == 0, result.output
    assert "高等数学" in result.output


def test_refresh_failure_exits_nonzero(config_path, offline) -> None:
    result = run(config_path, "refresh")
    assert result.exit_code == 1
    assert "刷新失败" in result.output


def test_show_falls_back_to_cache(config_path, offline, payload_bytes, tmp_path) -> None:
    (tmp_path / "cache.json").write_bytes(payload_bytes)
    result = run(config_path, "show", "-w", "3")
    assert result.exit_code == 0, result.output
    assert "网络同步失败" in result.output
    assert "线性代数" in result.output


def test_info_and_detail(config_path, online) -> None:
    result = run(config_path, "info")
    assert result.exit_code == 0, result.output
    assert "2025-2026" in result.output

    result = run(config_path, "detail", "英语")
    assert result.exit_code == 0, result.output
    assert "王老师" in result.output

    result = run(config_path, "detail", "体育")
    assert result.exit_code == 1


def test_export_writes_ics(config_path, online, tmp_path) -> None:
    (tmp_path / "calendars").mkdir()
    result = run(config_path, "export")
    assert result.exit_code == 0, result.output
    assert "已同步 5 个日程到日历" in result.output
    ics = (tmp_path / "calendars" / "课程表.ics").read_text(encoding="utf-8")
    assert ics.count("BEGIN:VEVENT") == 5


def test_export_dry_run(config_path, online, tmp_path) -> None:
    result = run(config_path, "export", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "2026-02-23 周一 08:00-09:40 高等数学" in result.output
    assert not (tmp_path / "calendars").exists()


def test_export_denied_without_consent(config_path, online) -> None:
    result = CliRunner().invoke(cli, ["--config", str(config_path), "export"], input="n\n")
    assert result.exit_code == 1
    assert "未获得日历权限" in result.output


def test_bad_timezone_rejected_before_export(config_path, online, tmp_path) -> None:
    (tmp_path / "calendars").mkdir()
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    raw["calendar"]["timezone"] = "Asia/Chongqin"
    config_path.write_text(yaml.safe_dump(raw), encoding="utf-8")

    result = run(config_path, "export")
    assert result.exit_code == 1
    assert "无效的时区" in result.output
    assert list((tmp_path / "calendars").iterdir()) == []


def test_login_and_logout(tmp_path, online, monkeypatch) -> None:
    monkeypatch.delenv(ENV_STUDENT_ID, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"cache_path": str(tmp_path / "cache.json"), "notification_seconds": 0}),
        encoding="utf-8",
    )

    result = run(path, "login", "2024210001")
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["student_id"] == "2024210001"
    assert (tmp_path / "cache.json").exists()

    result = run(path, "logout")
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["student_id"] == ""
    assert not (tmp_path / "cache.json").exists()


def test_login_rejects_bad_id(tmp_path) -> None:
    result = run(tmp_path / "config.yaml", "login", "123")
    assert result.exit_code == 1
    assert "学号应为10位数字" in result.output


def test_requires_login(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(ENV_STUDENT_ID, raising=False)
    result = run(tmp_path / "missing.yaml", "show")
    assert result.exit_code == 1
    assert "尚未登录" in result.output


def test_clear_cache(config_path, payload_bytes, tmp_path) -> None:
    (tmp_path / "cache.json").write_bytes(payload_bytes)
    result = run(config_path, "clear-cache")
    assert result.exit_code == 0
    assert not (tmp_path / "cache.json").exists()
