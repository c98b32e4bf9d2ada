"""课程配色：按课程名排序后分配稳定的颜色编号"""

from __future__ import annotations

import colorsys
import math
from typing import Iterable

from .models import CourseInstance

GOLDEN_RATIO_CONJUGATE = 0.6180339887

# 首选步长，避免色环上相邻编号的颜色太接近；与课程数不互质时另选
WHEEL_STEP = 7

SATURATION = 0.7
# 亮度 0.6 保证白色文字清晰
BRIGHTNESS = 0.6

FALLBACK_COLOR = "#3d6bb3"


def assign_colors(
    instances: Iterable[CourseInstance],
    exclude_types: Iterable[str] = (),
) -> dict[str, int]:
    """为每门课分配颜色编号。

    只取决于去重后的课程名集合：按字典序排序后依次编号，
    与获取顺序、重复次数无关，同一门课每次刷新拿到的编号都相同。

    Parameters
    ----------
    instances : Iterable[CourseInstance]
        课表中的全部课程
    exclude_types : Iterable[str]
        不参与编号的课程类型（例如 "考试"），默认全部参与

    Returns
    -------
    dict[str, int]
        课程名 -> 颜色编号
    """
    excluded = set(exclude_types)
    names = sorted({i.course for i in instances if i.type not in excluded})
    return {name: index for index, name in enumerate(names)}


def golden_hue(index: int) -> float:
    return (index * GOLDEN_RATIO_CONJUGATE) % 1.0


def wheel_step(total: int) -> int:
    """与 total 互质的步长：优先 WHEEL_STEP，否则取大于 1 的最小互质数（必为质数）。"""
    if total <= 1:
        return 1
    if math.gcd(WHEEL_STEP, total) == 1:
        return WHEEL_STEP
    step = 2
    while math.gcd(step, total) != 1:
        step += 1
    return step


def wheel_hue(index: int, total: int, step: int | None = None) -> float:
    """均分色环，total 变化时已有课程的颜色也会变"""
    if total <= 0:
        return 0.0
    if step is None:
        step = wheel_step(total)
    return ((index * step) % total) / total


def _to_hex(hue: float) -> str:
    r, g, b = colorsys.hsv_to_rgb(hue, SATURATION, BRIGHTNESS)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def course_color(index: int | None, total: int, policy: str = "golden") -> str:
    """根据颜色编号得到 rich 可用的 "#rrggbb" 颜色。"""
    if index is None or total <= 0:
        return FALLBACK_COLOR
    if policy == "wheel":
        return _to_hex(wheel_hue(index, total))
    return _to_hex(golden_hue(index))
