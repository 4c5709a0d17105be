# File: marketsync/core/services/platform/ebay/fulfillment.py
"""
# ==============================================================================
# 模块名称: eBay Fulfillment API 服务 (订单)
# ==============================================================================
#
# [Purpose / 用途]
# GET /sell/fulfillment/v1/order 拉取订单并转换为 RemoteOrder；
# GET /sell/fulfillment/v1/order/{orderId} 单个订单详情。
#
# [Filter / 筛选]
# 使用 lastmodifieddate 而不是 creationdate，
# 这样小时级增量同步也能捕获老订单的状态变化。
#
# ==============================================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from marketsync.core.repository.request_log_repo import (
    REQUEST_TYPE_ORDER_DETAIL,
    REQUEST_TYPE_ORDER_LIST,
    REQUEST_TYPE_TEST_CONNECT,
)
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import Credentials, RemoteOrder, RemoteOrderItem
from marketsync.core.services.platform.ebay.client import EbayClient
from marketsync.core.sys.exceptions import PlatformAPIError
from marketsync.core.sys.utils import format_iso, parse_datetime, to_decimal

# 订单取消后 orderFulfillmentStatus 不变，用此值覆盖平台状态
CANCELED_STATUS = "CANCELED"


class FulfillmentService(BaseService):
    API_VERSION = "v1"
    BASE_ENDPOINT = f"/sell/fulfillment/{API_VERSION}"

    def __init__(self, client: EbayClient):
        super().__init__()
        self.client = client

    def get_orders(self, credentials: Credentials, since: datetime, until: datetime,
                   account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        self.log("📦 Fetching orders...")
        params = {"filter": f"lastmodifieddate:[{format_iso(since)}..{format_iso(until)}]"}
        orders = self.client.get_paginated(
            f"{self.BASE_ENDPOINT}/order",
            credentials,
            "orders",
            params=params,
            request_type=REQUEST_TYPE_ORDER_LIST,
            account_id=account_id,
        )
        self.log(f"✅ Fetched {len(orders)} orders")
        return orders

    def get_order(self, credentials: Credentials, order_id: str,
                  account_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """单个订单详情，订单不存在返回 None"""
        try:
            return self.client.get(
                f"{self.BASE_ENDPOINT}/order/{order_id}",
                credentials,
                request_type=REQUEST_TYPE_ORDER_DETAIL,
                account_id=account_id,
            )
        except PlatformAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def test_connection(self, credentials: Credentials, account_id: Optional[int] = None) -> bool:
        self.client.get(
            f"{self.BASE_ENDPOINT}/order",
            credentials,
            params={"limit": 1},
            request_type=REQUEST_TYPE_TEST_CONNECT,
            account_id=account_id,
            retry_count=0,
        )
        return True


def _platform_status(order: Dict[str, Any]) -> str:
    cancel_state = (order.get("cancelStatus") or {}).get("cancelState")
    if cancel_state == "CANCELED":
        return CANCELED_STATUS
    return str(order.get("orderFulfillmentStatus") or "")


def convert_order(order: Dict[str, Any]) -> RemoteOrder:
    """eBay order -> RemoteOrder"""
    total = (order.get("pricingSummary") or {}).get("total") or {}
    line_items = order.get("lineItems") or []

    instructions = (order.get("fulfillmentStartInstructions") or [{}])[0]
    ship_to = (instructions.get("shippingStep") or {}).get("shipTo") or {}
    address = ship_to.get("contactAddress") or {}

    ship_by = None
    if line_items:
        ship_by = (line_items[0].get("lineItemFulfillmentInstructions") or {}).get("shipByDate")

    remote = RemoteOrder(
        platform_order_no=str(order.get("orderId") or ""),
        platform_status=_platform_status(order),
        total_amount=to_decimal(total.get("value")),
        currency=total.get("currency"),
        order_time=parse_datetime(order.get("creationDate")),
        ship_deadline=parse_datetime(ship_by),
        recipient_name=ship_to.get("fullName"),
        recipient_phone=(ship_to.get("primaryPhone") or {}).get("phoneNumber"),
        country=address.get("countryCode"),
        province=address.get("stateOrProvince"),
        city=address.get("city"),
        zip_code=address.get("postalCode"),
        address=" ".join(filter(None, [address.get("addressLine1"), address.get("addressLine2")])) or None,
        raw=order,
    )

    for item in line_items:
        quantity = int(item.get("quantity") or 1)
        cost = item.get("lineItemCost") or {}
        line_total = to_decimal(cost.get("value"))
        remote.items.append(RemoteOrderItem(
            platform_sku=str(item.get("legacyItemId") or item.get("lineItemId") or ""),
            sku=item.get("sku"),
            name=item.get("title") or "",
            quantity=quantity,
            # lineItemCost 是整行金额
            price=(line_total / quantity).quantize(Decimal("0.01")) if quantity else line_total,
            currency=cost.get("currency"),
        ))
    return remote
