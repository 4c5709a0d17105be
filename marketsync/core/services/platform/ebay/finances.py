# File: marketsync/core/services/platform/ebay/finances.py
"""
# ==============================================================================
# 模块名称: eBay Finances API 服务 (财务数据)
# ==============================================================================
#
# [Purpose / 用途]
# GET /sell/finances/v1/transaction (apiz 域名) 拉取交易明细，
# 按 orderId 聚合成佣金八项。
#
# [Mapping / 映射]
# 金额符号取自 bookingEntry (CREDIT 为正, DEBIT 为负)。
# SALE            : accruals_for_sale += 净额 + 费用, sale_commission -= 费用
# REFUND          : refunds_and_cancellations
# SHIPPING_LABEL  : processing_and_delivery
# NON_SALE_CHARGE : services_amount
# CREDIT          : compensation_amount
# TRANSFER        : money_transfer
# 其他            : others_amount
#
# ==============================================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from marketsync.core.repository.request_log_repo import REQUEST_TYPE_FINANCE
from marketsync.core.repository.schema import COMMISSION_FIELDS
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import CommissionSummary, Credentials
from marketsync.core.services.platform.ebay.client import EbayClient
from marketsync.core.sys.utils import format_iso

TYPE_BUCKETS = {
    "REFUND": "refunds_and_cancellations",
    "SHIPPING_LABEL": "processing_and_delivery",
    "NON_SALE_CHARGE": "services_amount",
    "CREDIT": "compensation_amount",
    "TRANSFER": "money_transfer",
}


def transaction_to_row(tx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    order_id = str(tx.get("orderId") or "").strip()
    if not order_id:
        return None

    amount = float((tx.get("amount") or {}).get("value") or 0)
    if tx.get("bookingEntry") == "DEBIT":
        amount = -amount

    row = {name: 0.0 for name in COMMISSION_FIELDS}
    tx_type = tx.get("transactionType") or ""
    if tx_type == "SALE":
        fees = float((tx.get("totalFeeAmount") or {}).get("value") or 0)
        row["accruals_for_sale"] = amount + fees
        row["sale_commission"] = -fees
    else:
        row[TYPE_BUCKETS.get(tx_type, "others_amount")] = amount

    row["platform_order_no"] = order_id
    row["currency"] = (tx.get("amount") or {}).get("currency")
    return row


def aggregate_transactions(transactions: List[Dict[str, Any]]) -> List[CommissionSummary]:
    rows = [r for r in (transaction_to_row(tx) for tx in transactions) if r is not None]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    sums = df.groupby("platform_order_no", sort=True)[list(COMMISSION_FIELDS)].sum()
    currencies = df.dropna(subset=["currency"]).groupby("platform_order_no")["currency"].first()

    return [
        CommissionSummary(
            platform_order_no=str(order_id),
            currency=currencies.get(order_id),
            **{name: Decimal(str(round(float(values[name]), 2))) for name in COMMISSION_FIELDS},
        )
        for order_id, values in sums.iterrows()
    ]


class FinancesService(BaseService):
    API_VERSION = "v1"
    BASE_ENDPOINT = f"/sell/finances/{API_VERSION}"

    def __init__(self, client: EbayClient):
        super().__init__()
        self.client = client

    def get_transactions(self, credentials: Credentials, since: datetime, until: datetime,
                         account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        self.log("💰 Fetching financial transactions...")
        params = {"filter": f"transactionDate:[{format_iso(since)}..{format_iso(until)}]"}
        transactions = self.client.get_paginated(
            f"{self.BASE_ENDPOINT}/transaction",
            credentials,
            "transactions",
            params=params,
            request_type=REQUEST_TYPE_FINANCE,
            account_id=account_id,
            base_url=self.client.config.apiz_base_url,
        )
        self.log(f"✅ Fetched {len(transactions)} financial transactions")
        return transactions

    def fetch_commissions(self, credentials: Credentials, since: datetime, until: datetime,
                          account_id: Optional[int] = None) -> List[CommissionSummary]:
        return aggregate_transactions(self.get_transactions(credentials, since, until, account_id=account_id))
