# File: marketsync/core/sys/logger.py
"""
日志系统 (Logging)

基于标准库 logging:
- get_logger(name): 业务日志 (marketsync.<name>)
- get_audit_logger(): 数据变更审计 (marketsync.audit)
- get_error_logger(): 错误日志 (marketsync.error)

所有记录自动注入 trace_id / user (来自 core.sys.context)，便于串联同一次同步的所有日志。
"""
import logging

from marketsync.core.sys.context import get_context

ROOT_LOGGER_NAME = "marketsync"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(trace_id)s|%(user)s] %(message)s"


class TraceContextFilter(logging.Filter):
    """把当前上下文的 trace_id / user 注入到 LogRecord"""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        # 调用方通过 extra 显式传入的值优先
        if not getattr(record, "trace_id", None):
            record.trace_id = ctx.trace_id or "-"
        if not getattr(record, "user", None):
            record.user = ctx.username or "System"
        return True


_initialized = False


def init_logging(level: int = logging.INFO) -> None:
    """
    初始化根日志器 (幂等)。
    Django 进程由 LOGGING 配置接管；脚本 / 调度进程调用此函数即可。
    """
    global _initialized
    if _initialized:
        return
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(TraceContextFilter())
        root.addHandler(handler)
    root.setLevel(level)
    _initialized = True


def _named(suffix: str) -> logging.Logger:
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{suffix}")
    if not any(isinstance(f, TraceContextFilter) for f in logger.filters):
        logger.addFilter(TraceContextFilter())
    return logger


def get_logger(name: str = None) -> logging.Logger:
    return _named(name or "app")


def get_audit_logger() -> logging.Logger:
    return _named("audit")


def get_error_logger() -> logging.Logger:
    return _named("error")
