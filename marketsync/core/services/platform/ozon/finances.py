# File: marketsync/core/services/platform/ozon/finances.py
"""
# ==============================================================================
# 模块名称: Ozon 财务 API (Finance)
# ==============================================================================
#
# [Purpose / 用途]
# 三种佣金获取方式:
# 1. 交易流水 /v3/finance/transaction/list (按时间窗口分页，pandas 按 posting 聚合)
# 2. 单订单汇总 /v3/finance/transaction/totals (按 posting_number 精确查询)
# 3. 结算报表 /v1/finance/mutual-settlement + /v1/report/info (异步生成，轮询)
# 另有现金流报表 /v1/finance/cash-flow-statement/list (按结算周期汇总)
#
# [Mapping / 流水 -> 八项]
# accruals_for_sale                          -> accruals_for_sale
# sale_commission                            -> sale_commission
# delivery_charge + return_delivery_charge   -> processing_and_delivery
# Σ services[].price                         -> services_amount
# amount - 以上各项 (剩余部分) 按 type 归类:
#   returns -> refunds_and_cancellations, compensation -> compensation_amount,
#   transferDelivery -> money_transfer, services -> services_amount, 其他 -> others_amount
# 因此一个订单的利润 (八项之和) 恒等于其全部流水 amount 之和。
#
# ==============================================================================
"""

import io
from datetime import datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from marketsync.core.repository.request_log_repo import (
    REQUEST_TYPE_CASH_FLOW,
    REQUEST_TYPE_FINANCE,
    REQUEST_TYPE_REPORT,
)
from marketsync.core.repository.schema import COMMISSION_FIELDS
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import (
    REPORT_FAILED,
    REPORT_SUCCESS,
    CashFlowEntry,
    CommissionSummary,
    Credentials,
    ReportHandle,
    ReportState,
)
from marketsync.core.services.platform.ozon.client import OzonClient, OzonCredentials
from marketsync.core.sys.exceptions import InvalidCredentialsError, ReportFailedError
from marketsync.core.sys.utils import format_iso, parse_datetime, to_decimal

TRANSACTION_LIST_ENDPOINT = "/v3/finance/transaction/list"
TRANSACTION_TOTALS_ENDPOINT = "/v3/finance/transaction/totals"
MUTUAL_SETTLEMENT_ENDPOINT = "/v1/finance/mutual-settlement"
REPORT_INFO_ENDPOINT = "/v1/report/info"
CASH_FLOW_ENDPOINT = "/v1/finance/cash-flow-statement/list"
PAGE_SIZE = 1000
CASH_FLOW_PAGE_SIZE = 100
SETTLEMENT_REPORT = "mutual-settlement"

RESIDUAL_BUCKETS = {
    "returns": "refunds_and_cancellations",
    "compensation": "compensation_amount",
    "transferDelivery": "money_transfer",
    "services": "services_amount",
}

# totals 接口字段 -> 八项
TOTALS_FIELD_MAP = {
    "accruals_for_sale": "accruals_for_sale",
    "sale_commission": "sale_commission",
    "processing_and_delivery": "processing_and_delivery",
    "refunds_and_cancellations": "refunds_and_cancellations",
    "services_amount": "services_amount",
    "compensation_amount": "compensation_amount",
    "money_transfer": "money_transfer",
    "others_amount": "others_amount",
}


def _money(value: float) -> Decimal:
    return Decimal(str(round(float(value), 2)))


def operation_to_row(op: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """单条流水 -> 八项 (float)，无 posting_number 返回 None"""
    posting_number = ((op.get("posting") or {}).get("posting_number") or "").strip()
    if not posting_number:
        return None

    row = {name: 0.0 for name in COMMISSION_FIELDS}
    row["accruals_for_sale"] = float(op.get("accruals_for_sale") or 0)
    row["sale_commission"] = float(op.get("sale_commission") or 0)
    row["processing_and_delivery"] = float(op.get("delivery_charge") or 0) + float(
        op.get("return_delivery_charge") or 0
    )
    row["services_amount"] = sum(float(s.get("price") or 0) for s in op.get("services") or [])

    itemised = sum(row.values())
    residual = float(op.get("amount") or 0) - itemised
    bucket = RESIDUAL_BUCKETS.get(op.get("type") or "", "others_amount")
    row[bucket] += residual

    row["platform_order_no"] = posting_number
    return row


def aggregate_operations(operations: List[Dict[str, Any]], currency: str) -> List[CommissionSummary]:
    """流水按 posting_number 聚合为 CommissionSummary 列表"""
    rows = [r for r in (operation_to_row(op) for op in operations) if r is not None]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    grouped = df.groupby("platform_order_no", sort=True)[list(COMMISSION_FIELDS)].sum()

    summaries = []
    for posting_number, values in grouped.iterrows():
        summaries.append(CommissionSummary(
            platform_order_no=str(posting_number),
            currency=currency,
            **{name: _money(values[name]) for name in COMMISSION_FIELDS},
        ))
    return summaries


def totals_to_summary(posting_number: str, totals: Dict[str, Any], currency: str) -> CommissionSummary:
    return CommissionSummary(
        platform_order_no=posting_number,
        currency=currency,
        **{target: to_decimal(totals.get(source)) for source, target in TOTALS_FIELD_MAP.items()},
    )


def cash_flow_to_entry(item: Dict[str, Any]) -> CashFlowEntry:
    period = item.get("period") or {}
    return CashFlowEntry(
        period_begin=parse_datetime(period.get("begin")),
        period_end=parse_datetime(period.get("end")),
        currency=item.get("currency_code") or None,
        orders_amount=to_decimal(item.get("orders_amount")),
        returns_amount=to_decimal(item.get("returns_amount")),
        commission_amount=to_decimal(item.get("commission_amount")),
        services_amount=to_decimal(item.get("services_amount")),
        delivery_and_return_amount=to_decimal(item.get("item_delivery_and_return_amount")),
    )


def report_rows_to_summaries(rows: List[Dict[str, Any]], currency: str) -> List[CommissionSummary]:
    """
    报表行 -> CommissionSummary。
    行需包含 posting_number 与八项列；同一 posting 多行时累加，无编号行丢弃。
    整个报表缺少 posting_number 列时抛 ReportFailedError (无法对账)。
    """
    if not rows:
        return []
    df = pd.DataFrame(rows)
    if "posting_number" not in df.columns:
        raise ReportFailedError(
            SETTLEMENT_REPORT,
            f"report has no posting_number column (columns: {', '.join(map(str, df.columns))})",
        )

    df["posting_number"] = df["posting_number"].fillna("").astype(str).str.strip()
    df = df[df["posting_number"] != ""]
    for name in COMMISSION_FIELDS:
        if name not in df.columns:
            df[name] = 0.0
        df[name] = pd.to_numeric(df[name], errors="coerce").fillna(0.0)

    grouped = df.groupby("posting_number", sort=True)[list(COMMISSION_FIELDS)].sum()
    return [
        CommissionSummary(
            platform_order_no=str(posting_number),
            currency=currency,
            **{name: _money(values[name]) for name in COMMISSION_FIELDS},
        )
        for posting_number, values in grouped.iterrows()
    ]


class OzonFinanceAPI(BaseService):

    def __init__(self, client: OzonClient):
        super().__init__()
        self.client = client

    # --- 1. 交易流水 ---

    def fetch_operations(self, credentials: Credentials, since: datetime, until: datetime,
                         account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        operations: List[Dict[str, Any]] = []
        page = 1
        while True:
            body = {
                "filter": {
                    "date": {"from": format_iso(since), "to": format_iso(until)},
                    "transaction_type": "all",
                },
                "page": page,
                "page_size": PAGE_SIZE,
            }
            data = self.client.post(
                TRANSACTION_LIST_ENDPOINT,
                credentials,
                data=body,
                request_type=REQUEST_TYPE_FINANCE,
                account_id=account_id,
            )
            result = data.get("result") or {}
            batch = result.get("operations") or []
            if not batch:
                break
            operations.extend(batch)
            if page >= int(result.get("page_count") or 0):
                break
            page += 1

        self.log(f"💰 [OZON] fetched {len(operations)} finance operations")
        return operations

    def fetch_commissions(self, credentials: Credentials, since: datetime, until: datetime,
                          account_id: Optional[int] = None) -> List[CommissionSummary]:
        currency = OzonCredentials.parse(credentials).settlement_currency
        operations = self.fetch_operations(credentials, since, until, account_id=account_id)
        return aggregate_operations(operations, currency)

    # --- 2. 单订单汇总 ---

    def fetch_totals(self, credentials: Credentials, posting_number: str,
                     account_id: Optional[int] = None) -> CommissionSummary:
        currency = OzonCredentials.parse(credentials).settlement_currency
        data = self.client.post(
            TRANSACTION_TOTALS_ENDPOINT,
            credentials,
            data={"posting_number": posting_number},
            request_type=REQUEST_TYPE_FINANCE,
            account_id=account_id,
        )
        return totals_to_summary(posting_number, data.get("result") or {}, currency)

    def fetch_totals_for(self, credentials: Credentials, posting_numbers: List[str],
                         account_id: Optional[int] = None) -> List[CommissionSummary]:
        """
        逐个 posting 查询 totals。
        单个 posting 失败只记日志并跳过；凭证被拒绝则整体中止 (后续请求必然同样失败)。
        """
        summaries = []
        for number in posting_numbers:
            try:
                summaries.append(self.fetch_totals(credentials, number, account_id=account_id))
            except InvalidCredentialsError:
                raise
            except Exception as e:
                self.log(f"❌ [OZON] totals for {number} skipped: {e}", level="error")
        if len(summaries) < len(posting_numbers):
            self.log(f"⚠️ [OZON] totals fetched {len(summaries)}/{len(posting_numbers)} postings", level="warning")
        return summaries

    # --- 3. 结算报表 ---

    def create_report(self, credentials: Credentials, since: datetime, until: datetime,
                      account_id: Optional[int] = None) -> ReportHandle:
        data = self.client.post(
            MUTUAL_SETTLEMENT_ENDPOINT,
            credentials,
            data={"date_from": format_iso(since), "date_to": format_iso(until), "language": "DEFAULT"},
            request_type=REQUEST_TYPE_REPORT,
            account_id=account_id,
        )
        result = data.get("result") or {}
        if isinstance(result.get("rows"), list):
            return ReportHandle(rows=result["rows"])
        return ReportHandle(code=result.get("code"))

    def report_info(self, credentials: Credentials, code: str,
                    account_id: Optional[int] = None) -> ReportState:
        data = self.client.post(
            REPORT_INFO_ENDPOINT,
            credentials,
            data={"code": code},
            request_type=REQUEST_TYPE_REPORT,
            account_id=account_id,
        )
        result = data.get("result") or {}
        status = str(result.get("status") or "").lower()
        if status == REPORT_SUCCESS:
            return ReportState(status=status, rows=self.download_rows(result.get("file") or ""))
        if status == REPORT_FAILED:
            return ReportState(status=status, error=str(result.get("error") or ""))
        return ReportState(status=status)

    def download_rows(self, file_url: str) -> List[Dict[str, Any]]:
        """下载报表文件 (xlsx / csv) 并转为行"""
        if not file_url:
            return []
        response = self.client.session.get(file_url, timeout=self.client.timeout)
        response.raise_for_status()
        buffer = io.BytesIO(response.content)
        if file_url.lower().split("?")[0].endswith(".csv"):
            df = pd.read_csv(buffer)
        else:
            df = pd.read_excel(buffer)
        return df.to_dict(orient="records")

    # --- 4. 现金流报表 ---

    def fetch_cash_flows(self, credentials: Credentials, since: datetime, until: datetime,
                         account_id: Optional[int] = None) -> List[CashFlowEntry]:
        """窗口按整天扩展: since 当天 00:00:00 到 until 当天 23:59:59"""
        date_from = datetime.combine(since.date(), time.min)
        date_to = datetime.combine(until.date(), time(23, 59, 59))
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = self.client.post(
                CASH_FLOW_ENDPOINT,
                credentials,
                data={
                    "date": {"from": format_iso(date_from), "to": format_iso(date_to)},
                    "page": page,
                    "page_size": CASH_FLOW_PAGE_SIZE,
                },
                request_type=REQUEST_TYPE_CASH_FLOW,
                account_id=account_id,
            )
            result = data.get("result") or {}
            batch = result.get("cash_flows") or []
            if not batch:
                break
            items.extend(batch)
            if page >= int(result.get("page_count") or 0):
                break
            page += 1

        self.log(f"💵 [OZON] fetched {len(items)} cash flow periods")
        return [cash_flow_to_entry(item) for item in items]
