"""异常定义：网络、解析、缓存与日历同步相关的错误"""

from __future__ import annotations


class ScheduleError(Exception):
    """所有课表相关错误的基类"""


class FetchError(ScheduleError):
    """获取课表失败（网络或解析）"""


class NetworkError(FetchError):
    """网络传输失败或服务端返回非 2xx 状态码"""


class DecodeError(FetchError):
    """返回内容不是合法的课表 JSON"""


class CacheMiss(ScheduleError):
    """本地还没有缓存（首次启动），不算真正的错误"""


class CalendarError(ScheduleError):
    """日历同步相关错误的基类"""


class CalendarAuthDenied(CalendarError):
    """日历权限被拒绝"""

    def __init__(self, message: str, settings_hint: str = "") -> None:
        super().__init__(message)
        self.settings_hint = settings_hint


class CalendarWriteError(CalendarError):
    """删除 / 写入 / 提交日历事件时出错"""
