# File: marketsync/core/services/platform/ozon/orders.py
"""
# ==============================================================================
# 模块名称: Ozon 订单 API (FBS Postings)
# ==============================================================================
#
# [Purpose / 用途]
# POST /v3/posting/fbs/list 分页拉取发货单，并转换为 RemoteOrder。
# POST /v3/posting/fbs/get 按 posting_number 查询单个发货单。
# 一个 posting 对应系统中的一条订单 (posting_number 为平台订单号)。
#
# [Paging / 分页]
# offset + limit(100)；返回条数不足 limit 即最后一页。
#
# ==============================================================================
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from marketsync.core.repository.request_log_repo import (
    REQUEST_TYPE_ORDER_DETAIL,
    REQUEST_TYPE_ORDER_LIST,
    REQUEST_TYPE_TEST_CONNECT,
)
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import Credentials, RemoteOrder, RemoteOrderItem
from marketsync.core.services.platform.ozon.client import OzonClient
from marketsync.core.sys.exceptions import PlatformAPIError
from marketsync.core.sys.utils import format_iso, now_utc, parse_datetime, to_decimal

POSTING_LIST_ENDPOINT = "/v3/posting/fbs/list"
POSTING_GET_ENDPOINT = "/v3/posting/fbs/get"
PAGE_LIMIT = 100


class OzonOrderAPI(BaseService):

    def __init__(self, client: OzonClient):
        super().__init__()
        self.client = client

    def _list_body(self, since: datetime, until: datetime, offset: int, limit: int) -> Dict[str, Any]:
        return {
            "dir": "ASC",
            "filter": {"since": format_iso(since), "to": format_iso(until)},
            "limit": limit,
            "offset": offset,
            "with": {"analytics_data": True, "financial_data": True},
        }

    def fetch_postings(self, credentials: Credentials, since: datetime, until: datetime,
                       account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        postings: List[Dict[str, Any]] = []
        offset = 0
        while True:
            data = self.client.post(
                POSTING_LIST_ENDPOINT,
                credentials,
                data=self._list_body(since, until, offset, PAGE_LIMIT),
                request_type=REQUEST_TYPE_ORDER_LIST,
                account_id=account_id,
            )
            page = (data.get("result") or {}).get("postings") or []
            self.log(f"📄 [OZON] offset={offset} postings={len(page)}")
            postings.extend(page)
            if len(page) < PAGE_LIMIT:
                break
            offset += PAGE_LIMIT
        return postings

    def fetch_posting(self, credentials: Credentials, posting_number: str,
                      account_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """单个发货单详情；平台返回 404 (不存在) 时为 None"""
        try:
            data = self.client.post(
                POSTING_GET_ENDPOINT,
                credentials,
                data={"posting_number": posting_number, "with": {"analytics_data": True, "financial_data": True}},
                request_type=REQUEST_TYPE_ORDER_DETAIL,
                account_id=account_id,
            )
        except PlatformAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return data.get("result") or None

    def test_connection(self, credentials: Credentials, account_id: Optional[int] = None) -> bool:
        until = now_utc()
        self.client.post(
            POSTING_LIST_ENDPOINT,
            credentials,
            data=self._list_body(until - timedelta(hours=24), until, 0, 1),
            request_type=REQUEST_TYPE_TEST_CONNECT,
            account_id=account_id,
            retry_count=0,
        )
        return True


def convert_posting(posting: Dict[str, Any]) -> RemoteOrder:
    """Ozon posting -> RemoteOrder (金额 = Σ price × quantity)"""
    order = RemoteOrder(
        platform_order_no=str(posting.get("posting_number") or ""),
        platform_status=str(posting.get("status") or ""),
        order_time=parse_datetime(posting.get("in_process_at")),
        ship_deadline=parse_datetime(posting.get("shipment_date")),
        ship_time=parse_datetime(posting.get("delivering_date")),
        raw=posting,
    )

    addressee = posting.get("addressee") or {}
    order.recipient_name = addressee.get("name") or None
    order.recipient_phone = addressee.get("phone") or None

    customer = posting.get("customer") or {}
    if customer:
        order.recipient_name = order.recipient_name or customer.get("name") or None
        order.recipient_phone = order.recipient_phone or customer.get("phone") or None
        address = customer.get("address") or {}
        order.country = address.get("country") or None
        order.province = address.get("region") or None
        order.city = address.get("city") or None
        order.zip_code = address.get("zip_code") or None
        order.address = address.get("address_tail") or None

    total = Decimal("0")
    for product in posting.get("products") or []:
        item = RemoteOrderItem(
            platform_sku=str(product.get("offer_id") or product.get("sku") or ""),
            sku=product.get("offer_id"),
            name=product.get("name") or "",
            quantity=int(product.get("quantity") or 0),
            price=to_decimal(product.get("price")),
            currency=product.get("currency_code"),
        )
        total += item.price * item.quantity
        order.items.append(item)
        if not order.currency and item.currency:
            order.currency = item.currency
    order.total_amount = total
    return order
