# File: marketsync/core/services/sync/queries.py
"""
# ==============================================================================
# 模块名称: 订单查询 (Order Queries)
# ==============================================================================
#
# [Purpose / 用途]
# 订单列表 / 详情 / 平台请求日志的只读查询，结果为 JSON 友好的字典。
#
# [Filters / 过滤]
# - status 可以是逗号分隔的多个标准状态
# - keyword 模糊匹配平台订单号或收件人
# - deadline: overdue (已超期) / within_1d / within_3d，只看待发货订单
#
# ==============================================================================
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from marketsync.core.repository.order_repo import OrderFilters, OrderRepository
from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.status import CANONICAL_STATUSES, STATUS_PENDING, STATUS_READY_TO_SHIP
from marketsync.core.services.sync.base import Page, clamp_page
from marketsync.core.sys.exceptions import AppValidationError, OrderNotFoundError
from marketsync.core.sys.utils import now_utc

DEADLINE_OVERDUE = "overdue"
DEADLINE_WINDOWS = {"within_1d": 1, "within_3d": 3}
OPEN_STATUSES = (STATUS_PENDING, STATUS_READY_TO_SHIP)

MAX_LOG_LIMIT = 200


def split_statuses(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    statuses = [s.strip() for s in str(raw).split(",") if s.strip()]
    unknown = [s for s in statuses if s not in CANONICAL_STATUSES]
    if unknown:
        raise AppValidationError("Unknown order status", details={"status": unknown})
    return statuses


class OrderQueryService(BaseService):

    def __init__(self, orders: OrderRepository, request_log: RequestLogRepository,
                 clock: Callable[[], datetime] = now_utc):
        super().__init__()
        self.orders = orders
        self.request_log = request_log
        self.clock = clock

    def build_filters(self, platform: Optional[str] = None, account_id: Optional[int] = None,
                      status: Optional[str] = None, keyword: Optional[str] = None,
                      since: Optional[datetime] = None, until: Optional[datetime] = None,
                      deadline: Optional[str] = None) -> OrderFilters:
        filters = OrderFilters(
            platform=platform or None,
            account_id=account_id,
            statuses=split_statuses(status),
            keyword=(keyword or "").strip() or None,
            since=since,
            until=until,
        )
        if not deadline:
            return filters

        now = self.clock()
        if deadline == DEADLINE_OVERDUE:
            filters.deadline_before = now
        elif deadline in DEADLINE_WINDOWS:
            filters.deadline_from = now
            filters.deadline_before = now + timedelta(days=DEADLINE_WINDOWS[deadline])
        else:
            raise AppValidationError(
                "Unknown deadline filter",
                details={"deadline": deadline, "allowed": [DEADLINE_OVERDUE, *DEADLINE_WINDOWS]},
            )
        filters.deadline_statuses = OPEN_STATUSES
        return filters

    def list_orders(self, user_id: int, filters: Optional[OrderFilters] = None,
                    page: Optional[int] = None, page_size: Optional[int] = None) -> Page:
        """按下单时间倒序分页；每个订单附带 items"""
        page, page_size = clamp_page(page, page_size)
        df, total = self.orders.list_df(user_id, filters, page=page, page_size=page_size)
        rows = self.orders.to_records(df.drop(columns=["raw_data"], errors="ignore"))

        items_df = self.orders.list_items_df([row["id"] for row in rows])
        grouped: Dict[int, List[Dict[str, Any]]] = {}
        for item in self.orders.to_records(items_df):
            grouped.setdefault(item["order_id"], []).append(item)
        for row in rows:
            row["items"] = grouped.get(row["id"], [])

        return Page(items=rows, total=total, page=page, page_size=page_size)

    def get_order(self, order_id: int) -> Dict[str, Any]:
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        order.pop("raw_data", None)
        order["items"] = self.orders.get_items(order_id)
        return order

    def request_logs(self, account_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """最近的平台请求日志 (不含请求头)"""
        limit = min(max(limit, 1), MAX_LOG_LIMIT)
        df = self.request_log.recent_df(account_id, limit=limit)
        return self.request_log.to_records(df.drop(columns=["request_headers"], errors="ignore"))
