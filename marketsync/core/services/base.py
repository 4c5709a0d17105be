# File: marketsync/core/services/base.py
"""
# ==============================================================================
# 模块名称: 服务基类 (Base Service)
# ==============================================================================
#
# [Purpose / 用途]
# 同步服务、平台客户端、报表轮询器的公共基类:
# - 以类名命名的 Logger (marketsync.<ClassName>)
# - 日志自动携带当前 trace_id / user
# - 单次操作耗时统计
#
# ==============================================================================
"""

import logging
import time
from typing import Optional

from marketsync.core.sys.context import get_current_user, get_trace_id
from marketsync.core.sys.logger import get_logger

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class BaseService:

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self._started_at: Optional[float] = None

    def log(self, message: str, level: str = "info") -> None:
        self.logger.log(
            LOG_LEVELS.get(level.lower(), logging.INFO),
            message,
            extra={"trace_id": get_trace_id(), "user": get_current_user()},
        )

    def start_timer(self) -> None:
        self._started_at = time.monotonic()

    def end_timer(self, operation_name: str = "Operation") -> None:
        if self._started_at is None:
            return
        elapsed = time.monotonic() - self._started_at
        self._started_at = None
        self.log(f"⏱️ {operation_name} completed in {elapsed:.3f}s")
