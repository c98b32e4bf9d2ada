"""课表状态：持有当前课表、显示周、配色和提示信息，负责刷新流程"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

from .cache import ScheduleCache
from .colors import assign_colors
from .errors import (
    CacheMiss,
    CalendarAuthDenied,
    DecodeError,
    FetchError,
    ScheduleError,
)
from .fetcher import DEFAULT_TIMEOUT, DEFAULT_URL_TEMPLATE, fetch_schedule
from .models import ScheduleDocument
from .weeks import (
    MIN_WEEK,
    ResolvedWeekState,
    clamp_week,
    expected_week,
    parse_week1_monday,
    real_week,
    resolve,
)

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 600.0
DEFAULT_NOTIFICATION_SECONDS = 2.0

Observer = Callable[["ScheduleState", str], None]
Dispatcher = Callable[[Callable[[], None]], None]


def run_inline(fn: Callable[[], None]) -> None:
    fn()


@dataclass(frozen=True)
class Notification:
    message: str = ""
    visible: bool = False


class ScheduleState:
    """课表的唯一状态持有者。

    所有状态修改都经过 ``_apply``，交给注入的 ``dispatch`` 在界面所属的上下文中执行，
    修改完成后通知订阅者。订阅回调收到 ``(state, change)``，change 为
    ``"document"``、``"week"``、``"loading"`` 或 ``"notification"``。
    """

    def __init__(
        self,
        cache: ScheduleCache,
        *,
        url_template: str = DEFAULT_URL_TEMPLATE,
        timeout: float = DEFAULT_TIMEOUT,
        notification_seconds: float = DEFAULT_NOTIFICATION_SECONDS,
        color_exclude_types: Iterable[str] = (),
        dispatch: Optional[Dispatcher] = None,
        today: Callable[[], date] = date.today,
        fetch: Callable[..., tuple[bytes, ScheduleDocument]] = fetch_schedule,
    ) -> None:
        self.cache = cache
        self.url_template = url_template
        self.timeout = timeout
        self.notification_seconds = notification_seconds
        self.color_exclude_types = tuple(color_exclude_types)
        self._dispatch = dispatch or run_inline
        self._today = today
        self._fetch = fetch

        self.student_id = ""
        self.document: ScheduleDocument | None = None
        self.is_loading = False
        self.color_map: dict[str, int] = {}
        self.notification = Notification()
        self.real_week: int | None = None
        self.is_current_week_real = False
        self.last_error: ScheduleError | None = None

        self._selected_week = MIN_WEEK
        self._week1_monday: date | None = None
        self._observers: list[Observer] = []
        self._lock = threading.RLock()
        self._refresh_lock = threading.Lock()
        self._dismiss_timer: threading.Timer | None = None
        self._notification_seq = 0

    # ------------------------------------------------------------------
    # 订阅与状态修改
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """订阅状态变化，返回取消订阅的函数。"""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _emit(self, change: str) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            observer(self, change)

    def _apply(self, mutate: Callable[[], None], change: str) -> None:
        def task() -> None:
            with self._lock:
                mutate()
            self._emit(change)

        self._dispatch(task)

    # ------------------------------------------------------------------
    # 周次
    # ------------------------------------------------------------------

    @property
    def has_orientation_week(self) -> bool:
        return self.document is not None and self.document.has_orientation_week

    @property
    def week1_monday(self) -> date | None:
        return self._week1_monday

    @property
    def selected_week(self) -> int:
        return self._selected_week

    @selected_week.setter
    def selected_week(self, week: int) -> None:
        self._apply(lambda: self._set_selected_week(week), "week")

    @property
    def week_state(self) -> ResolvedWeekState | None:
        if self.real_week is None:
            return None
        return ResolvedWeekState(
            selected_week=self._selected_week,
            real_week=self.real_week,
            is_current_week_real=self.is_current_week_real,
        )

    def _set_selected_week(self, week: int) -> None:
        self._selected_week = clamp_week(week, self.has_orientation_week)
        self._update_current_week_status()

    def _update_current_week_status(self) -> None:
        if self._week1_monday is None:
            return
        resolved = resolve(
            self._week1_monday, self._today(), self._selected_week, self.has_orientation_week
        )
        self.real_week = resolved.real_week
        self.is_current_week_real = resolved.is_current_week_real

    def _parse_start_date(self) -> None:
        """解析开学日期并跳到本周；解析失败时保持原有周次状态不变。"""
        if self.document is None:
            return
        try:
            monday = parse_week1_monday(self.document.week1_monday)
        except DecodeError as e:
            logger.warning("开学日期格式无法识别，保持当前周次: %s", e)
            return
        self._week1_monday = monday
        real = real_week(monday, self._today())
        self._selected_week = expected_week(real, self.has_orientation_week)
        self._update_current_week_status()

    def refresh_week_status(self) -> None:
        """跨天后重新计算"本周"标记。"""
        self._apply(self._update_current_week_status, "week")

    # ------------------------------------------------------------------
    # 课表
    # ------------------------------------------------------------------

    def _set_document(self, document: ScheduleDocument | None) -> None:
        self.document = document
        if document is None:
            self.color_map = {}
            return
        self.color_map = assign_colors(document.instances, self.color_exclude_types)
        self._parse_start_date()

    def _set_loading(self, loading: bool) -> None:
        self.is_loading = loading

    def startup(self, student_id: str) -> ScheduleDocument | None:
        """启动流程：先读缓存立即显示，再静默同步网络。"""
        self.student_id = student_id.strip()
        self.load_from_cache()
        return self.refresh(silent=True)

    def load_from_cache(self) -> ScheduleDocument | None:
        try:
            document = self.cache.load()
        except CacheMiss:
            logger.debug("没有本地缓存")
            return None
        except DecodeError as e:
            logger.warning("本地缓存已损坏，忽略: %s", e)
            return None
        self._apply(lambda: self._set_document(document), "document")
        return document

    def refresh(self, silent: bool = False) -> ScheduleDocument | None:
        """从网络刷新课表。

        Parameters
        ----------
        silent : bool
            定时刷新为 True：失败只记日志，不弹提示，也不显示加载状态

        Returns
        -------
        ScheduleDocument | None
            成功时返回新课表；失败或被跳过时返回 None，原课表保持不变，
            失败原因记录在 ``last_error``
        """
        if not self.student_id:
            return None

        if silent:
            if not self._refresh_lock.acquire(blocking=False):
                logger.debug("已有刷新在进行，跳过本次静默刷新")
                return None
        else:
            self._refresh_lock.acquire()
        try:
            return self._refresh_locked(silent)
        finally:
            self._refresh_lock.release()

    def _refresh_locked(self, silent: bool) -> ScheduleDocument | None:
        if not silent:
            self._apply(lambda: self._set_loading(True), "loading")
        try:
            data, document = self._fetch(self.student_id, self.url_template, self.timeout)
        except FetchError as e:
            self.last_error = e
            if silent:
                logger.warning("静默刷新失败: %s", e)
            else:
                logger.error("刷新失败: %s", e)
                self.notify(f"刷新失败: {e}")
            return None
        finally:
            if not silent:
                self._apply(lambda: self._set_loading(False), "loading")

        self.last_error = None
        self._apply(lambda: self._set_document(document), "document")
        try:
            self.cache.save(data)
        except OSError as e:
            logger.warning("写入缓存失败: %s", e)
        if not silent:
            self.notify("课表同步成功")
        return document

    def clear_cache(self) -> None:
        self.cache.clear()

    def logout(self) -> None:
        """退出登录：清空学号、课表和缓存。"""
        self.student_id = ""
        self.cache.clear()
        self._apply(lambda: self._set_document(None), "document")

    # ------------------------------------------------------------------
    # 提示信息
    # ------------------------------------------------------------------

    def notify(self, message: str) -> None:
        """显示一条提示，``notification_seconds`` 秒后自动隐藏。"""
        with self._lock:
            self._notification_seq += 1
            seq = self._notification_seq
            if self._dismiss_timer is not None:
                self._dismiss_timer.cancel()
                self._dismiss_timer = None
            if self.notification_seconds > 0:
                timer = threading.Timer(
                    self.notification_seconds, self.dismiss_notification, args=(seq,)
                )
                timer.daemon = True
                self._dismiss_timer = timer
            else:
                timer = None

        def show() -> None:
            self.notification = Notification(message=message, visible=True)

        self._apply(show, "notification")
        if timer is not None:
            timer.start()

    def dismiss_notification(self, seq: int | None = None) -> None:
        """隐藏提示。带 seq 时只隐藏编号对应的那一条，之后又显示了新提示则不处理。"""

        def hide() -> None:
            if seq is not None and seq != self._notification_seq:
                return
            self.notification = Notification(message=self.notification.message, visible=False)

        self._apply(hide, "notification")

    # ------------------------------------------------------------------
    # 日历同步
    # ------------------------------------------------------------------

    def sync_calendar(
        self,
        exporter,
        *,
        consent: Optional[Callable[[], bool]] = None,
        first_alert: int | None = None,
        second_alert: int | None = None,
        calendar_name: str | None = None,
    ) -> Future:
        """在后台把当前课表同步到日历，完成后通过提示信息反馈结果。"""
        document = self.document
        if document is None:
            self.notify("暂无课表数据，无法同步日历")
            future: Future = Future()
            future.set_result(None)
            return future

        kwargs = {}
        if calendar_name:
            kwargs["calendar_name"] = calendar_name
        future = exporter.submit(
            document.instances,
            document.week1_monday,
            first_alert=first_alert,
            second_alert=second_alert,
            consent=consent,
            **kwargs,
        )
        future.add_done_callback(self._on_export_done)
        return future

    def _on_export_done(self, future: Future) -> None:
        try:
            result = future.result()
        except CalendarAuthDenied as e:
            logger.warning("日历权限被拒绝: %s", e)
            self.notify(f"{e} {e.settings_hint}".strip())
        except ScheduleError as e:
            logger.error("同步日历失败: %s", e)
            self.notify("同步日历失败")
        except Exception:
            logger.exception("同步日历时出现未预期的错误")
            self.notify("同步日历失败")
        else:
            self.notify(f"已同步 {result.created} 个日程到日历")


class PeriodicRefresher:
    """后台定时静默刷新，可取消；单线程顺序执行，不会与自身重叠。"""

    def __init__(self, state: ScheduleState, interval: float = DEFAULT_REFRESH_INTERVAL) -> None:
        self.state = state
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="cqschedule-refresh", daemon=True
        )
        self._thread.start()
        logger.debug("定时刷新已启动，间隔 %.0f 秒", self.interval)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.state.refresh(silent=True)
            except Exception:
                logger.exception("定时刷新出错")

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.debug("定时刷新已停止")
