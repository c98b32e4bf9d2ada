"""课表可视化输出：用 rich 库在终端渲染周课表"""

from __future__ import annotations

from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .colors import course_color
from .models import PERIOD_TIMES, WEEKDAY_NAMES, CourseInstance, ScheduleDocument
from .state import Notification, ScheduleState
from .weeks import is_current_week_real

console = Console()

SPECIAL_MARK = "★"


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def format_header(state: ScheduleState, week: int | None = None, today: date | None = None) -> Text:
    """顶部信息：今天日期、显示的周次以及是否为本周。"""
    today = today or date.today()
    if week is None or week == state.selected_week:
        week = state.selected_week
        current = state.is_current_week_real
    else:
        current = state.real_week is not None and is_current_week_real(
            week, state.real_week, state.has_orientation_week
        )
    header = Text()
    header.append(f"{today.year}/{today.month}/{today.day}", style="bold")
    header.append(f"  第{week}周 ")
    if current:
        header.append(" 本周 ", style="bold black on bright_green")
    else:
        header.append(" 非本周 ", style="black on bright_black")
    if state.is_loading:
        header.append("  同步中…", style="dim")
    return header


def build_week_table(
    document: ScheduleDocument,
    week: int,
    color_map: dict[str, int],
    color_policy: str = "golden",
) -> Table:
    """构建某一周的 12 节 x 7 天课表矩阵。

    Parameters
    ----------
    document : ScheduleDocument
        课表
    week : int
        要显示的周次
    color_map : dict[str, int]
        课程名 -> 颜色编号
    color_policy : str
        "golden" 或 "wheel"

    Returns
    -------
    Table
    """
    total = len(color_map)

    # (day, period) -> (课程, 是否为该课的第一节)
    grid: dict[tuple[int, int], tuple[CourseInstance, bool]] = {}
    for instance in document.instances_for_week(week):
        for period in instance.periods:
            grid[(instance.day, period)] = (instance, period == instance.first_period)

    table = Table(
        title=f"第 {week} 周",
        show_header=True,
        header_style="bold",
        border_style="bright_black",
        title_style="bold bright_white",
        padding=(0, 1),
        show_lines=True,
    )
    table.add_column("节次", style="dim", width=7, justify="center")
    for name in WEEKDAY_NAMES:
        table.add_column(name, width=12, justify="center")

    for period, (begin, end) in PERIOD_TIMES.items():
        cells: list[Text | str] = [f"{period}\n{begin}\n{end}"]
        for day in range(1, 8):
            entry = grid.get((day, period))
            if entry is None:
                cells.append("")
                continue
            instance, is_first = entry
            color = course_color(color_map.get(instance.course), total, color_policy)
            cell = Text(style=f"white on {color}")
            if is_first:
                if not instance.is_regular:
                    cell.append(SPECIAL_MARK, style=f"bold yellow on {color}")
                cell.append(_truncate(instance.course, 10) + "\n", style=f"bold white on {color}")
                cell.append(_truncate(instance.location, 10))
            else:
                cell.append("│")
            cells.append(cell)
        table.add_row(*cells)
    return table


def display_week(
    state: ScheduleState,
    week: int | None = None,
    color_policy: str = "golden",
) -> None:
    """在终端展示一周的课表以及本周课程列表。"""
    document = state.document
    if document is None:
        console.print(Panel(
            "[bold red]暂无课表数据[/bold red]\n\n"
            "请先使用 [bold]cqschedule login[/bold] 登录，或检查网络后执行 [bold]cqschedule refresh[/bold]",
            title="课表",
            border_style="red",
        ))
        return

    week = state.selected_week if week is None else week
    console.print(format_header(state, week))
    console.print(build_week_table(document, week, state.color_map, color_policy))

    total = len(state.color_map)
    instances = sorted(document.instances_for_week(week), key=lambda i: (i.day, i.first_period))
    if not instances:
        console.print("[dim]本周没有课程[/dim]\n")
        return
    for instance in instances:
        color = course_color(state.color_map.get(instance.course), total, color_policy)
        mark = f" [yellow]{SPECIAL_MARK}{instance.type}[/yellow]" if not instance.is_regular else ""
        console.print(
            f"  [{color}]●[/{color}] 周{WEEKDAY_NAMES[instance.day - 1]} "
            f"{instance.start_time}-{instance.end_time}  {instance.course}{mark}"
            f"  [dim]{instance.location}  {instance.teacher}[/dim]"
        )
    console.print()


def display_course_detail(instance: CourseInstance) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("课程名称", instance.course)
    table.add_row("上课教师", instance.teacher)
    table.add_row("上课地点", instance.location)
    table.add_row("上课时间", f"{instance.start_time} - {instance.end_time}")
    table.add_row("上课节数", ",".join(str(p) for p in instance.periods))
    table.add_row("课程类型", instance.type)
    console.print(Panel(table, title="课程详情", border_style="bright_blue", expand=False))


def display_user_info(document: ScheduleDocument | None) -> None:
    """个人信息与学期信息。"""
    if document is None:
        console.print("[yellow]暂无课表数据[/yellow]")
        return
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("姓名", document.student_name)
    table.add_row("学号", document.student_id)
    table.add_row("学年", document.academic_year)
    table.add_row("学期", f"第 {document.semester} 学期")
    table.add_row("开学日期", document.week1_monday[:10])
    table.add_row("课程数", str(len({i.course for i in document.instances})))
    console.print(Panel(table, title="用户详情", border_style="bright_blue", expand=False))


def display_notification(notification: Notification) -> None:
    if notification.visible and notification.message:
        console.print(f"[bold white on grey23] {notification.message} [/bold white on grey23]")
