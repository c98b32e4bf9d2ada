"""登录模块：校验学号、交互式输入学号，以及日历权限询问"""

from __future__ import annotations

import os

from .config import ENV_STUDENT_ID

STUDENT_ID_LENGTH = 10


def validate_student_id(student_id: str) -> str:
    """校验学号并返回去掉首尾空白后的学号。

    Parameters
    ----------
    student_id : str
        学号

    Returns
    -------
    str

    Raises
    ------
    ValueError
        学号不是 10 位数字
    """
    sid = (student_id or "").strip()
    if len(sid) != STUDENT_ID_LENGTH or not sid.isdigit():
        raise ValueError(f"学号应为{STUDENT_ID_LENGTH}位数字")
    return sid


def interactive_login() -> str:
    """交互式登录：从环境变量或终端输入获取学号。

    环境变量:
        CQSCHEDULE_SID  - 学号

    Returns
    -------
    str
        校验通过的学号
    """
    sid = os.environ.get(ENV_STUDENT_ID, "")
    if sid:
        print("[*] 从环境变量读取学号...")
        try:
            return validate_student_id(sid)
        except ValueError as e:
            print(f"[!] 环境变量中的学号无效: {e}")
            print("[*] 切换到手动输入...")

    max_retries = 3
    for attempt in range(max_retries):
        sid = input(f"请输入{STUDENT_ID_LENGTH}位学号: ").strip()
        try:
            sid = validate_student_id(sid)
            print("[+] 学号有效")
            return sid
        except ValueError as e:
            print(f"[x] {e}")
            if attempt < max_retries - 1:
                print(f"[*] 请重试 ({attempt + 2}/{max_retries})...")

    raise RuntimeError("学号输入错误次数过多，请确认后重试")


def ask_calendar_consent() -> bool:
    """首次同步日历时询问是否允许写入日历。"""
    try:
        answer = input("是否允许将课表写入日历？[y/N]: ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        return False
    return answer in ("y", "yes", "是")
