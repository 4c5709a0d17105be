# File: marketsync/core/repository/order_repo.py
"""
# ==============================================================================
# 模块名称: 订单仓库 (Order Repository)
# ==============================================================================
#
# [Purpose / 用途]
# orders / order_items 表的读写。
#
# [Architecture / 架构]
# - 同步字段写入: insert_order / update_sync_fields (订单同步使用)
# - 佣金字段写入: apply_commission (佣金对账使用，唯一写入佣金列的入口)
# - 查询: find_by_platform_order_no / get / list_order_numbers
# - 列表: list_df (OrderFilters 过滤 + 分页) / list_items_df
#
# ==============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy import and_, func, insert, or_, select, update

from marketsync.core.repository.base import BaseRepository
from marketsync.core.repository.schema import COMMISSION_FIELDS, order_items, orders
from marketsync.core.sys.utils import now_utc

# 已存在订单在同步时允许刷新的字段
SYNC_MUTABLE_FIELDS = ("status", "platform_status", "total_amount", "ship_time", "ship_deadline")


@dataclass
class OrderFilters:
    platform: Optional[str] = None
    account_id: Optional[int] = None
    statuses: Sequence[str] = ()
    keyword: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    deadline_from: Optional[datetime] = None
    deadline_before: Optional[datetime] = None
    deadline_statuses: Sequence[str] = ()


class OrderRepository(BaseRepository):
    NUMERIC_COLS = ["total_amount", "profit_amount", *COMMISSION_FIELDS]

    def find_by_platform_order_no(self, platform_order_no: str) -> Optional[Dict[str, Any]]:
        """按平台订单号查找 (全局唯一，不区分账户)"""
        stmt = select(orders).where(orders.c.platform_order_no == platform_order_no)
        return self.fetch_one(stmt)

    def get(self, order_id: int) -> Optional[Dict[str, Any]]:
        return self.fetch_one(select(orders).where(orders.c.id == order_id))

    def get_items(self, order_id: int) -> List[Dict[str, Any]]:
        stmt = select(order_items).where(order_items.c.order_id == order_id).order_by(order_items.c.id)
        return self.fetch_all(stmt)

    def insert_order(self, values: Dict[str, Any], items: List[Dict[str, Any]]) -> int:
        """
        插入订单及商品行 (同一事务)。
        订单号冲突时抛出 sqlalchemy IntegrityError，由调用方处理。
        """
        now = now_utc()
        row = {k: v for k, v in values.items() if k not in COMMISSION_FIELDS}
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        with self.atomic() as conn:
            result = conn.execute(insert(orders).values(**row))
            order_id = int(result.inserted_primary_key[0])
            if items:
                conn.execute(insert(order_items), [{**item, "order_id": order_id} for item in items])

        self.logger.info(f"[DB] INSERT orders {values.get('platform_order_no')} items={len(items)}")
        return order_id

    def update_sync_fields(self, order_id: int, values: Dict[str, Any]) -> int:
        """只刷新 SYNC_MUTABLE_FIELDS，其他字段 (收件人 / 佣金) 保持不变"""
        patch = {k: values[k] for k in SYNC_MUTABLE_FIELDS if k in values}
        patch["updated_at"] = now_utc()
        stmt = update(orders).where(orders.c.id == order_id).values(**patch)
        return self.execute_stmt(stmt)

    def apply_commission(self, platform_order_no: str, amounts: Dict[str, Decimal], profit: Decimal,
                         currency: Optional[str], synced_at: datetime,
                         account_id: Optional[int] = None) -> int:
        """写入佣金八项 + 利润，返回影响行数 (0 表示本地无此订单)"""
        conditions = [orders.c.platform_order_no == platform_order_no]
        if account_id is not None:
            conditions.append(orders.c.account_id == account_id)

        patch = {name: amounts.get(name, Decimal("0")) for name in COMMISSION_FIELDS}
        patch.update(
            profit_amount=profit,
            commission_currency=currency,
            commission_synced_at=synced_at,
            updated_at=now_utc(),
        )
        stmt = update(orders).where(and_(*conditions)).values(**patch)
        return self.execute_stmt(stmt)

    def list_order_numbers(self, account_id: int, since: datetime, until: datetime,
                           statuses: Optional[Sequence[str]] = None) -> List[str]:
        """窗口内 (按下单时间) 的本地订单号，可按标准状态集合过滤"""
        stmt = select(orders.c.platform_order_no).where(
            and_(
                orders.c.account_id == account_id,
                orders.c.order_time >= since,
                orders.c.order_time <= until,
            )
        )
        if statuses:
            stmt = stmt.where(orders.c.status.in_(list(statuses)))
        df = self.query_df(stmt.order_by(orders.c.order_time))
        if df.empty:
            return []
        return df["platform_order_no"].astype(str).tolist()

    def list_df(self, user_id: int, filters: Optional[OrderFilters] = None,
                page: int = 1, page_size: int = 10) -> Tuple[pd.DataFrame, int]:
        """
        订单列表 (按下单时间倒序分页)，返回 (当前页, 总数)。
        金额列转为 float。
        """
        conditions = [orders.c.user_id == user_id, *_filter_conditions(filters or OrderFilters())]
        counted = self.fetch_one(select(func.count().label("total")).select_from(orders).where(and_(*conditions)))
        stmt = (
            select(orders)
            .where(and_(*conditions))
            .order_by(orders.c.order_time.desc(), orders.c.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        df = self.to_numeric(self.query_df(stmt), self.NUMERIC_COLS)
        return df, int(counted["total"]) if counted else 0

    def list_items_df(self, order_ids: Sequence[int]) -> pd.DataFrame:
        """多个订单的商品行 (列表页一次性加载)"""
        if not order_ids:
            return pd.DataFrame(columns=[c.name for c in order_items.columns])
        stmt = select(order_items).where(order_items.c.order_id.in_(list(order_ids))).order_by(order_items.c.id)
        return self.to_numeric(self.query_df(stmt), ["price"])


def _filter_conditions(filters: OrderFilters) -> list:
    conditions = []
    if filters.platform:
        conditions.append(orders.c.platform == filters.platform)
    if filters.account_id is not None:
        conditions.append(orders.c.account_id == filters.account_id)
    if filters.statuses:
        conditions.append(orders.c.status.in_(list(filters.statuses)))
    if filters.keyword:
        pattern = f"%{filters.keyword}%"
        conditions.append(or_(orders.c.platform_order_no.like(pattern), orders.c.recipient_name.like(pattern)))
    if filters.since is not None:
        conditions.append(orders.c.order_time >= filters.since)
    if filters.until is not None:
        conditions.append(orders.c.order_time <= filters.until)

    # 发货期限: [deadline_from, deadline_before)
    if filters.deadline_from is not None or filters.deadline_before is not None:
        conditions.append(orders.c.ship_deadline.isnot(None))
    if filters.deadline_from is not None:
        conditions.append(orders.c.ship_deadline >= filters.deadline_from)
    if filters.deadline_before is not None:
        conditions.append(orders.c.ship_deadline < filters.deadline_before)
    if filters.deadline_statuses:
        conditions.append(orders.c.status.in_(list(filters.deadline_statuses)))
    return conditions
