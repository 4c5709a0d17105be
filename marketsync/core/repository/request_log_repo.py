# File: marketsync/core/repository/request_log_repo.py
"""
平台 API 请求日志 (orders_request_log)。
每次外部调用写一行；写入失败只记录错误日志，不影响同步主流程。
"""

import json
from typing import Any, Optional

import pandas as pd
from sqlalchemy import insert, select

from marketsync.core.repository.base import BaseRepository
from marketsync.core.repository.schema import orders_request_log
from marketsync.core.sys.utils import now_utc

# 响应体截断长度
MAX_BODY_LENGTH = 65535

REQUEST_TYPE_ORDER_LIST = "OrderList"
REQUEST_TYPE_ORDER_DETAIL = "OrderDetail"
REQUEST_TYPE_CASH_FLOW = "CashFlow"
REQUEST_TYPE_FINANCE = "Finance"
REQUEST_TYPE_REPORT = "Report"
REQUEST_TYPE_TEST_CONNECT = "TestConnect"


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False, default=str)
    text = str(value)
    return text[:MAX_BODY_LENGTH]


class RequestLogRepository(BaseRepository):

    def record(self, *, account_id: Optional[int], platform: str, request_type: str, url: str,
               method: str, headers: Any = None, body: Any = None, response_status: Optional[int] = None,
               response_body: Any = None, duration_ms: Optional[int] = None,
               error_message: Optional[str] = None) -> None:
        stmt = insert(orders_request_log).values(
            account_id=account_id,
            platform=platform,
            request_type=request_type,
            request_url=url,
            request_method=method.upper(),
            request_headers=_as_text(headers),
            request_body=_as_text(body),
            response_status=response_status,
            response_body=_as_text(response_body),
            duration_ms=duration_ms,
            error_message=error_message,
            created_at=now_utc(),
        )
        try:
            self.execute_stmt(stmt)
        except Exception as e:
            self.logger.error(f"Request log write failed: {e}")

    def recent_df(self, account_id: Optional[int] = None, limit: int = 50) -> pd.DataFrame:
        stmt = select(orders_request_log).order_by(orders_request_log.c.id.desc()).limit(limit)
        if account_id is not None:
            stmt = stmt.where(orders_request_log.c.account_id == account_id)
        return self.query_df(stmt)
