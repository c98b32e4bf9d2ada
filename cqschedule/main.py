#!/usr/bin/env python3
"""重邮课表查看器 - 命令行入口"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass

import click
from rich.logging import RichHandler
from rich.panel import Panel

from .auth import ask_calendar_consent, interactive_login, validate_student_id
from .cache import ScheduleCache
from .calendar_store import IcsCalendarStore
from .config import AppConfig, ConfigError, load_config, save_config
from .display import (
    console,
    display_course_detail,
    display_notification,
    display_user_info,
    display_week,
)
from .errors import CalendarError, ScheduleError
from .exporter import CalendarExporter, describe_event
from .state import PeriodicRefresher, ScheduleState
from .weeks import parse_week1_monday, week_range

BANNER = r"""
   ____ ___  _   _ ____ _____
  / ___/ _ \| | | |  _ \_   _|
 | |  | | | | | | | |_) || |
 | |__| |_| | |_| |  __/ | |
  \____\__\_\\___/|_|    |_|

        重邮课表 v1.0
"""

# watch 模式下检查跨天的间隔（秒）
TICK_SECONDS = 60


@dataclass
class Context:
    config: AppConfig
    config_path: str | None


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def build_state(config: AppConfig) -> ScheduleState:
    return ScheduleState(
        ScheduleCache(config.cache_path),
        url_template=config.endpoint,
        timeout=config.timeout,
        notification_seconds=config.notification_seconds,
        color_exclude_types=config.color_exclude_types,
    )


def print_notifications(state: ScheduleState, change: str) -> None:
    if change == "notification":
        display_notification(state.notification)


def _require_student_id(config: AppConfig) -> str:
    if not config.student_id:
        console.print("[red]尚未登录，请先执行 [bold]cqschedule login[/bold][/red]")
        sys.exit(1)
    return config.student_id


def _load(config: AppConfig, offline: bool = False) -> ScheduleState:
    """读缓存立即显示；非离线模式再静默同步网络。"""
    sid = _require_student_id(config)
    state = build_state(config)
    state.subscribe(print_notifications)
    if offline:
        state.student_id = sid
        state.load_from_cache()
    else:
        state.startup(sid)
        if state.last_error is not None:
            console.print(f"[yellow][!] 网络同步失败，显示的是本地缓存: {state.last_error}[/yellow]")
    return state


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="配置文件路径（默认 ~/.cqschedule/config.yaml）")
@click.option("-v", "--verbose", is_flag=True, help="输出调试日志")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """重邮课表：获取、缓存、按周查看课表，并可同步到日历。"""
    setup_logging(verbose)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    ctx.obj = Context(config=config, config_path=config_path)


@cli.command()
@click.argument("student_id", required=False)
@click.pass_obj
def login(obj: Context, student_id: str | None) -> None:
    """保存学号并同步课表。"""
    console.print(Panel(BANNER, border_style="bright_blue", expand=False))
    try:
        sid = validate_student_id(student_id) if student_id else interactive_login()
    except (ValueError, RuntimeError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    obj.config.student_id = sid
    path = save_config(obj.config, obj.config_path)
    console.print(f"[green][+] 学号 {sid} 已保存到 {path}[/green]")

    state = build_state(obj.config)
    state.subscribe(print_notifications)
    state.student_id = sid
    if state.refresh(silent=False) is None:
        sys.exit(1)
    display_week(state, color_policy=obj.config.color_policy)


@cli.command()
@click.pass_obj
def logout(obj: Context) -> None:
    """清除学号和本地缓存。"""
    build_state(obj.config).logout()
    obj.config.student_id = ""
    save_config(obj.config, obj.config_path)
    console.print("[green][+] 已退出登录[/green]")


@cli.command()
@click.option("-w", "--week", type=int, default=None, help="显示指定周（默认为本周）")
@click.option("--offline", is_flag=True, help="只读本地缓存，不联网")
@click.pass_obj
def show(obj: Context, week: int | None, offline: bool) -> None:
    """显示某一周的课表。"""
    state = _load(obj.config, offline=offline)
    if week is not None:
        if state.document is not None and week not in week_range(state.has_orientation_week):
            console.print("[yellow]周次超出范围，已调整[/yellow]")
        state.selected_week = week
    display_week(state, color_policy=obj.config.color_policy)


@cli.command()
@click.pass_obj
def refresh(obj: Context) -> None:
    """立即从网络刷新课表。"""
    state = build_state(obj.config)
    state.subscribe(print_notifications)
    state.student_id = _require_student_id(obj.config)
    state.load_from_cache()
    if state.refresh(silent=False) is None:
        sys.exit(1)
    console.print(
        f"[green]{state.document.student_name}: 共 {len(state.document.instances)} 条课程记录[/green]"
    )


@cli.command()
@click.option("--offline", is_flag=True, help="只读本地缓存，不联网")
@click.pass_obj
def info(obj: Context, offline: bool) -> None:
    """显示个人与学期信息。"""
    state = _load(obj.config, offline=offline)
    display_user_info(state.document)


@cli.command()
@click.argument("course")
@click.option("-w", "--week", type=int, default=None, help="只看指定周")
@click.option("--offline", is_flag=True, help="只读本地缓存，不联网")
@click.pass_obj
def detail(obj: Context, course: str, week: int | None, offline: bool) -> None:
    """查看某门课的详情（课程名支持模糊匹配）。"""
    state = _load(obj.config, offline=offline)
    if state.document is None:
        console.print("[red]暂无课表数据[/red]")
        sys.exit(1)
    matches = [
        i for i in state.document.instances
        if course in i.course and (week is None or i.week == week)
    ]
    if not matches:
        console.print(f"[red]没有找到课程 \"{course}\"[/red]")
        sys.exit(1)
    # 同一门课在每周重复出现，只展示不同的安排
    seen = set()
    for instance in sorted(matches, key=lambda i: (i.week, i.day, i.first_period)):
        key = (instance.course, instance.day, instance.periods, instance.location, instance.type)
        if key in seen:
            continue
        seen.add(key)
        display_course_detail(instance)


@cli.command(name="clear-cache")
@click.pass_obj
def clear_cache(obj: Context) -> None:
    """删除本地缓存的课表。"""
    build_state(obj.config).clear_cache()
    console.print("[green][+] 本地缓存已清除[/green]")


@cli.command()
@click.option("--first-alert", type=int, default=None, help="第一次提醒提前的分钟数")
@click.option("--second-alert", type=int, default=None, help="第二次提醒提前的分钟数")
@click.option("--calendar-name", default=None, help="目标日历名称")
@click.option("--dry-run", is_flag=True, help="只列出将要写入的事件")
@click.option("--offline", is_flag=True, help="只读本地缓存，不联网")
@click.pass_obj
def export(
    obj: Context,
    first_alert: int | None,
    second_alert: int | None,
    calendar_name: str | None,
    dry_run: bool,
    offline: bool,
) -> None:
    """把课表整体替换写入日历（.ics 文件）。"""
    cal_config = obj.config.calendar
    first_alert = cal_config.first_alert if first_alert is None else first_alert
    second_alert = cal_config.second_alert if second_alert is None else second_alert
    calendar_name = calendar_name or cal_config.name

    state = _load(obj.config, offline=offline)
    if state.document is None:
        console.print("[red]暂无课表数据，无法同步日历[/red]")
        sys.exit(1)

    if dry_run:
        try:
            monday = parse_week1_monday(state.document.week1_monday)
        except ScheduleError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)
        instances = sorted(state.document.instances, key=lambda i: (i.week, i.day, i.first_period))
        for instance in instances:
            console.print(f"  {describe_event(instance, monday)}")
        console.print(f"\n[dim]共 {len(instances)} 个事件将写入日历 {calendar_name}[/dim]")
        return

    try:
        store = IcsCalendarStore(
            cal_config.directory,
            timezone=cal_config.timezone,
            default_alarm_minutes=cal_config.default_alarm,
        )
    except CalendarError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    exporter = CalendarExporter(store)
    console.print(f"[*] 正在同步到日历 {calendar_name}...")
    future = state.sync_calendar(
        exporter,
        consent=ask_calendar_consent,
        first_alert=first_alert,
        second_alert=second_alert,
        calendar_name=calendar_name,
    )
    # 等待后台线程及其完成回调结束
    exporter.shutdown(wait=True)
    if future.exception() is not None:
        sys.exit(1)
    console.print(f"[dim]日历文件: {store.path_for(calendar_name)}[/dim]")


@cli.command()
@click.option("--interval", type=float, default=None, help="自动刷新间隔（秒）")
@click.pass_obj
def watch(obj: Context, interval: float | None) -> None:
    """持续显示本周课表，并定时在后台刷新。"""
    state = _load(obj.config)
    color_policy = obj.config.color_policy

    def redraw(s: ScheduleState, change: str) -> None:
        if change == "document":
            console.clear()
            display_week(s, color_policy=color_policy)

    display_week(state, color_policy=color_policy)
    state.subscribe(redraw)

    refresher = PeriodicRefresher(state, interval or obj.config.refresh_interval)
    refresher.start()
    try:
        while True:
            time.sleep(TICK_SECONDS)
            before = state.week_state
            state.refresh_week_status()
            if state.week_state != before:
                redraw(state, "document")
    except KeyboardInterrupt:
        console.print("\n[dim]已退出[/dim]")
    finally:
        refresher.cancel()


if __name__ == "__main__":
    cli()
