# File: marketsync/core/components/db/client.py
"""
文件说明: 数据库客户端 (Database Client)

进程内唯一的 SQLAlchemy Engine：
- MySQL: pool_pre_ping + pool_recycle，连接字符集 utf8mb4
- SQLite: StaticPool 共享单连接 (测试用内存库)
写操作统一走 execute_stmt，并在 audit 日志记录 动作/表名/影响行数。
"""

from typing import Optional, Union

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import ClauseElement

from marketsync.common.settings import settings
from marketsync.core.sys.logger import get_audit_logger, get_error_logger

audit_logger = get_audit_logger()
error_logger = get_error_logger()

Statement = Union[str, ClauseElement]


def _engine_for(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    connect_args = {}
    if url.startswith("mysql"):
        connect_args["init_command"] = "SET NAMES utf8mb4 COLLATE utf8mb4_unicode_ci"
    return create_engine(url, pool_recycle=3600, pool_pre_ping=True, connect_args=connect_args)


def _describe(stmt: Statement) -> str:
    """INSERT orders / UPDATE platform_accounts ..."""
    if isinstance(stmt, str):
        return stmt.split(None, 1)[0].upper() if stmt.strip() else "SQL"
    table = getattr(getattr(stmt, "table", None), "name", "-")
    return f"{type(stmt).__name__.upper()} {table}"


class DBClient:
    _engine: Optional[Engine] = None

    @classmethod
    def configure(cls, url: str) -> Engine:
        """切换到指定连接 (旧 Engine 会被释放)"""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = _engine_for(url)
        return cls._engine

    @classmethod
    def get_engine(cls) -> Engine:
        if cls._engine is None:
            cls._engine = _engine_for(settings.SQLALCHEMY_URL)
        return cls._engine

    @classmethod
    def atomic_transaction(cls):
        return cls.get_engine().begin()

    @classmethod
    def read_df(cls, stmt: Statement, params: dict = None) -> pd.DataFrame:
        if isinstance(stmt, str):
            stmt = text(stmt)
        with cls.get_engine().connect() as conn:
            return pd.read_sql(stmt, conn, params=params)

    @classmethod
    def execute_stmt(cls, stmt: Statement, params: dict = None, conn: Connection = None) -> int:
        """执行 INSERT / UPDATE / DELETE 并返回影响行数；传入 conn 时加入调用方事务"""
        label = _describe(stmt)
        if isinstance(stmt, str):
            stmt = text(stmt)
        try:
            if conn is None:
                with cls.get_engine().begin() as own:
                    rowcount = own.execute(stmt, params or {}).rowcount
            else:
                rowcount = conn.execute(stmt, params or {}).rowcount
        except Exception as e:
            error_logger.error(f"❌ [DB] {label} failed: {e}")
            raise
        audit_logger.info(f"[DB] {label} rows={rowcount}")
        return rowcount
