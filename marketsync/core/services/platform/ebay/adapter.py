# File: marketsync/core/services/platform/ebay/adapter.py
"""
eBay 平台适配器

佣金只支持按时间窗口拉取财务流水；订单详情按 orderId 单查。
eBay 没有妥投状态，FULFILLED (shipped) 即视为可对账。
"""

from datetime import datetime
from typing import List, Optional

from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.platform.adapter import (
    CommissionSummary,
    CredentialField,
    Credentials,
    OrderDetailSource,
    PlatformAdapter,
    RemoteOrder,
)
from marketsync.core.services.platform.ebay.client import PLATFORM_EBAY, EbayClient
from marketsync.core.services.platform.ebay.finances import FinancesService
from marketsync.core.services.platform.ebay.fulfillment import (
    CANCELED_STATUS,
    FulfillmentService,
    convert_order,
)
from marketsync.core.services.platform.status import (
    STATUS_CANCELLED,
    STATUS_READY_TO_SHIP,
    STATUS_SHIPPED,
)


class EbayAdapter(PlatformAdapter, OrderDetailSource):
    platform_id = PLATFORM_EBAY
    display_label = "eBay"
    STATUS_MAPPING = {
        "NOT_STARTED": STATUS_READY_TO_SHIP,
        "IN_PROGRESS": STATUS_READY_TO_SHIP,
        "FULFILLED": STATUS_SHIPPED,
        CANCELED_STATUS: STATUS_CANCELLED,
    }
    COMMISSION_STATUSES = (STATUS_SHIPPED,)

    def __init__(self, request_log: Optional[RequestLogRepository] = None, client: Optional[EbayClient] = None):
        self.client = client or EbayClient(request_log=request_log)
        self.fulfillment = FulfillmentService(self.client)
        self.finances = FinancesService(self.client)

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField(key="refresh_token", label="Refresh Token", type="password"),
            CredentialField(key="marketplace_id", label="Marketplace ID", required=False, default="EBAY_US"),
            CredentialField(key="app_id", label="App ID (optional override)", required=False),
            CredentialField(key="cert_id", label="Cert ID (optional override)", type="password", required=False),
        ]

    def test_connection(self, credentials: Credentials, account_id: Optional[int] = None) -> bool:
        return self.fulfillment.test_connection(credentials, account_id=account_id)

    def fetch_orders(self, credentials: Credentials, since: datetime, until: datetime,
                     account_id: Optional[int] = None) -> List[RemoteOrder]:
        orders = self.fulfillment.get_orders(credentials, since, until, account_id=account_id)
        return [convert_order(o) for o in orders if o.get("orderId")]

    def fetch_commissions(self, credentials: Credentials, since: datetime, until: datetime,
                          account_id: Optional[int] = None) -> List[CommissionSummary]:
        return self.finances.fetch_commissions(credentials, since, until, account_id=account_id)

    def fetch_order_detail(self, credentials: Credentials, platform_order_no: str,
                           account_id: Optional[int] = None) -> Optional[RemoteOrder]:
        order = self.fulfillment.get_order(credentials, platform_order_no, account_id=account_id)
        return convert_order(order) if order else None
