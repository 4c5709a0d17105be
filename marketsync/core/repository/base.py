# File: marketsync/core/repository/base.py
"""
仓库基类 (Base Repository)

子类只组装 SQLAlchemy Core 语句，执行、取行、读 DataFrame 都经由这里转给 DBClient。
"""

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from marketsync.core.components.db.client import DBClient, Statement
from marketsync.core.sys.logger import get_logger


class BaseRepository:
    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def atomic(self):
        """with repo.atomic() as conn: ..."""
        return DBClient.atomic_transaction()

    def execute_stmt(self, stmt: Statement, params: Optional[Dict] = None, conn=None) -> int:
        return DBClient.execute_stmt(stmt, params, conn=conn)

    def fetch_one(self, stmt: Statement) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(stmt)
        return rows[0] if rows else None

    def fetch_all(self, stmt: Statement) -> List[Dict[str, Any]]:
        with DBClient.get_engine().connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def query_df(self, stmt: Statement, params: Optional[Dict] = None) -> pd.DataFrame:
        try:
            return DBClient.read_df(stmt, params)
        except Exception as e:
            self.logger.error(f"❌ query_df failed: {e}")
            raise

    @staticmethod
    def to_numeric(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
        """金额列统一转成 float (SQLite/MySQL 返回的 Decimal / str 混型)；NULL 记为 0"""
        for col in cols:
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
        return df

    @staticmethod
    def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
        """DataFrame -> 行字典列表；NaN / NaT 记为 None，numpy 标量转为 Python 原生类型"""
        if df.empty:
            return []
        return df.astype(object).where(pd.notna(df), None).to_dict("records")
