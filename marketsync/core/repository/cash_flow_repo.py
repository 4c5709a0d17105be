# File: marketsync/core/repository/cash_flow_repo.py
"""
现金流报表仓库 (cash_flow_statements)。
同一账户的同一账期 (period_begin) 只保留一行，重复同步走更新。
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from sqlalchemy import and_, func, insert, select, update

from marketsync.core.repository.base import BaseRepository
from marketsync.core.repository.schema import cash_flow_statements
from marketsync.core.sys.utils import now_utc

AMOUNT_COLS = [
    "orders_amount",
    "returns_amount",
    "commission_amount",
    "services_amount",
    "delivery_and_return_amount",
]


class CashFlowRepository(BaseRepository):

    def find(self, account_id: int, period_begin: datetime) -> Optional[Dict[str, Any]]:
        stmt = select(cash_flow_statements).where(
            and_(
                cash_flow_statements.c.account_id == account_id,
                cash_flow_statements.c.period_begin == period_begin,
            )
        )
        return self.fetch_one(stmt)

    def get(self, statement_id: int) -> Optional[Dict[str, Any]]:
        return self.fetch_one(select(cash_flow_statements).where(cash_flow_statements.c.id == statement_id))

    def insert(self, values: Dict[str, Any]) -> int:
        now = now_utc()
        row = {**values, "created_at": now, "updated_at": now}
        with self.atomic() as conn:
            result = conn.execute(insert(cash_flow_statements).values(**row))
            return int(result.inserted_primary_key[0])

    def update(self, statement_id: int, values: Dict[str, Any]) -> int:
        stmt = (
            update(cash_flow_statements)
            .where(cash_flow_statements.c.id == statement_id)
            .values(**values, updated_at=now_utc())
        )
        return self.execute_stmt(stmt)

    def list_df(self, user_id: int, account_id: Optional[int] = None, page: int = 1,
                page_size: int = 20) -> Tuple[pd.DataFrame, int]:
        """按账期结束时间倒序分页，返回 (当前页, 总数)"""
        conditions = [cash_flow_statements.c.user_id == user_id]
        if account_id is not None:
            conditions.append(cash_flow_statements.c.account_id == account_id)

        counted = self.fetch_one(
            select(func.count().label("total")).select_from(cash_flow_statements).where(and_(*conditions))
        )
        stmt = (
            select(cash_flow_statements)
            .where(and_(*conditions))
            .order_by(cash_flow_statements.c.period_end.desc(), cash_flow_statements.c.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        df = self.to_numeric(self.query_df(stmt), AMOUNT_COLS)
        return df, int(counted["total"]) if counted else 0
