"""本地缓存：保存最近一次成功获取的课表原始字节"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path

from .errors import CacheMiss
from .models import ScheduleDocument, decode_schedule

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".cqschedule" / "schedule_cache.json"


class ScheduleCache:
    """单文件缓存，每次整体覆盖，没有版本。

    写入先落到同目录的临时文件再 os.replace，读取方不会看到写了一半的文件。
    """

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_CACHE_PATH) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> ScheduleDocument:
        """读取并解码缓存。

        Raises
        ------
        CacheMiss
            还没有缓存
        DecodeError
            缓存文件已损坏
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as e:
            raise CacheMiss(str(self.path)) from e
        return decode_schedule(data)

    def save(self, data: bytes) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        logger.debug("缓存已写入 %s (%d 字节)", self.path, len(data))

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)
        logger.debug("缓存已清除 %s", self.path)
