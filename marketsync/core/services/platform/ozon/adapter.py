# File: marketsync/core/services/platform/ozon/adapter.py
"""
Ozon 平台适配器

组合 OzonOrderAPI / OzonFinanceAPI，实现全部三种佣金获取能力:
按订单号精确查询 (totals)、结算报表、按时间窗口的交易流水。
另支持单个发货单详情与现金流报表。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.platform.adapter import (
    CashFlowEntry,
    CashFlowSource,
    CommissionSummary,
    CredentialField,
    Credentials,
    OrderDetailSource,
    PlatformAdapter,
    RemoteOrder,
    ReportCommissionSource,
    ReportHandle,
    ReportState,
    TargetedCommissionSource,
)
from marketsync.core.services.platform.ozon.client import PLATFORM_OZON, OzonClient, OzonCredentials
from marketsync.core.services.platform.ozon.finances import OzonFinanceAPI, report_rows_to_summaries
from marketsync.core.services.platform.ozon.orders import OzonOrderAPI, convert_posting
from marketsync.core.services.platform.status import (
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_READY_TO_SHIP,
    STATUS_SHIPPED,
)


class OzonAdapter(PlatformAdapter, TargetedCommissionSource, ReportCommissionSource,
                  OrderDetailSource, CashFlowSource):
    platform_id = PLATFORM_OZON
    display_label = "Ozon"
    STATUS_MAPPING = {
        "awaiting_registration": STATUS_PENDING,
        "acceptance_in_progress": STATUS_PENDING,
        "awaiting_approve": STATUS_PENDING,
        "awaiting_packaging": STATUS_PENDING,
        "awaiting_deliver": STATUS_READY_TO_SHIP,
        "arbitration": STATUS_SHIPPED,
        "client_arbitration": STATUS_SHIPPED,
        "delivering": STATUS_SHIPPED,
        "driver_pickup": STATUS_SHIPPED,
        "sent_by_seller": STATUS_SHIPPED,
        "delivered": STATUS_DELIVERED,
        "cancelled": STATUS_CANCELLED,
        "not_accepted": STATUS_CANCELLED,
    }

    def __init__(self, request_log: Optional[RequestLogRepository] = None, client: Optional[OzonClient] = None):
        self.client = client or OzonClient(request_log=request_log)
        self.orders_api = OzonOrderAPI(self.client)
        self.finance_api = OzonFinanceAPI(self.client)

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField(key="client_id", label="Client ID"),
            CredentialField(key="api_key", label="API Key", type="password"),
            CredentialField(key="settlement_currency", label="Settlement Currency", required=False,
                            default="RUB"),
        ]

    def test_connection(self, credentials: Credentials, account_id: Optional[int] = None) -> bool:
        return self.orders_api.test_connection(credentials, account_id=account_id)

    def fetch_orders(self, credentials: Credentials, since: datetime, until: datetime,
                     account_id: Optional[int] = None) -> List[RemoteOrder]:
        postings = self.orders_api.fetch_postings(credentials, since, until, account_id=account_id)
        return [convert_posting(p) for p in postings if p.get("posting_number")]

    def fetch_commissions(self, credentials: Credentials, since: datetime, until: datetime,
                          account_id: Optional[int] = None) -> List[CommissionSummary]:
        return self.finance_api.fetch_commissions(credentials, since, until, account_id=account_id)

    def fetch_commissions_for(self, credentials: Credentials, order_numbers: List[str],
                              account_id: Optional[int] = None) -> List[CommissionSummary]:
        return self.finance_api.fetch_totals_for(credentials, order_numbers, account_id=account_id)

    def create_commission_report(self, credentials: Credentials, since: datetime, until: datetime,
                                 account_id: Optional[int] = None) -> ReportHandle:
        return self.finance_api.create_report(credentials, since, until, account_id=account_id)

    def get_commission_report(self, credentials: Credentials, code: str,
                              account_id: Optional[int] = None) -> ReportState:
        return self.finance_api.report_info(credentials, code, account_id=account_id)

    def summarize_report_rows(self, credentials: Credentials,
                              rows: List[Dict[str, Any]]) -> List[CommissionSummary]:
        currency = OzonCredentials.parse(credentials).settlement_currency
        return report_rows_to_summaries(rows, currency)

    def fetch_order_detail(self, credentials: Credentials, platform_order_no: str,
                           account_id: Optional[int] = None) -> Optional[RemoteOrder]:
        posting = self.orders_api.fetch_posting(credentials, platform_order_no, account_id=account_id)
        return convert_posting(posting) if posting else None

    def fetch_cash_flows(self, credentials: Credentials, since: datetime, until: datetime,
                         account_id: Optional[int] = None) -> List[CashFlowEntry]:
        return self.finance_api.fetch_cash_flows(credentials, since, until, account_id=account_id)
