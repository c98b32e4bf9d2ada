"""课表获取模块：按学号请求课表接口并解码"""

from __future__ import annotations

import logging

import requests

from .errors import NetworkError
from .models import ScheduleDocument, decode_schedule

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://cqupt.ishub.top/api/curriculum/{student_id}/curriculum.json"

HEADERS = {
    "User-Agent": "cqschedule/1.0",
    "Accept": "application/json",
}

DEFAULT_TIMEOUT = 15


def build_url(student_id: str, template: str = DEFAULT_URL_TEMPLATE) -> str:
    """把学号填入接口地址模板。"""
    return template.format(student_id=student_id.strip())


def fetch_schedule(
    student_id: str,
    url_template: str = DEFAULT_URL_TEMPLATE,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[bytes, ScheduleDocument]:
    """获取并解码某个学生的课表。

    Parameters
    ----------
    student_id : str
        学号
    url_template : str
        含 ``{student_id}`` 占位符的接口地址
    timeout : float
        请求超时（秒）

    Returns
    -------
    tuple[bytes, ScheduleDocument]
        原始响应字节（写入缓存用）和解码后的课表

    Raises
    ------
    NetworkError
        无法连接或服务端返回错误状态码
    DecodeError
        返回内容不是合法的课表
    """
    url = build_url(student_id, url_template)
    logger.debug("请求课表 %s", url)
    try:
        resp = requests.get(url, headers=HEADERS, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise NetworkError(f"无法获取课表，请检查网络: {e}") from e

    data = resp.content
    document = decode_schedule(data)
    logger.info(
        "获取到 %s 的课表，共 %d 条课程记录", document.student_name, len(document.instances)
    )
    return data, document
