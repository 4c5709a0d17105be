# File: marketsync/core/sys/context.py
"""
文件说明: 执行上下文 (Trace Context)

每个 HTTP 请求、每轮调度、每次管理命令各自开启一个 trace，
日志过滤器与 StandardResponse 从这里读取 trace_id / 操作人，
使一次同步产生的全部日志可以按 trace_id 串联。
基于 contextvars，线程与协程互不干扰。
"""

import contextvars
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from marketsync.core.sys.utils import now_utc

NO_TRACE = "-"
SYSTEM_USER = "System"


@dataclass(frozen=True)
class TraceContext:
    trace_id: Optional[str] = None
    username: Optional[str] = None
    function: Optional[str] = None  # 入口名 (视图函数 / SyncScheduler / 命令名)
    started_at: Optional[datetime] = None


_current: contextvars.ContextVar[TraceContext] = contextvars.ContextVar(
    "marketsync_trace_context",
    default=TraceContext(),
)


def new_trace(function: str, username: Optional[str] = None) -> str:
    """开启新的 trace 并返回 trace_id (覆盖当前上下文)"""
    trace_id = uuid.uuid4().hex
    _current.set(TraceContext(trace_id=trace_id, username=username, function=function, started_at=now_utc()))
    return trace_id


def get_context() -> TraceContext:
    return _current.get()


def get_trace_id() -> str:
    return _current.get().trace_id or NO_TRACE


def get_current_user() -> str:
    return _current.get().username or SYSTEM_USER


def clear_context() -> None:
    _current.set(TraceContext())
