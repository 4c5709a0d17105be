# File: marketsync/core/services/sync/commission.py
"""
# ==============================================================================
# 模块名称: 佣金对账 (Commission Reconciler)
# ==============================================================================
#
# [Purpose / 用途]
# 从平台获取每个订单的佣金八项，写回本地订单 (唯一写入佣金字段的入口)。
#
# [Strategy / 获取策略] 按优先级:
#   1. targeted : 适配器支持按订单号查询 -> 只查本地窗口内的订单
#   2. report   : 适配器支持异步报表 -> 创建报表并轮询
#   3. direct   : 按时间窗口拉取财务流水并聚合
# full_window=True 时跳过 targeted，对整个窗口的平台数据对账。
#
# [Result / 结果]
# processed = 参与对账的本地订单数 (full_window 时为平台返回的汇总条数)；
# updated_count = 实际写入佣金的订单数。
#
# [Eligibility / 可对账状态]
# 定时任务经 reconcile_settled 只处理适配器 COMMISSION_STATUSES 中的订单
# (默认 delivered；eBay 没有签收状态，使用 shipped)。
#
# ==============================================================================
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import AccountRepository, PlatformAccount
from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.services.platform.adapter import (
    CommissionSummary,
    Credentials,
    PlatformAdapter,
    ReportCommissionSource,
    TargetedCommissionSource,
)
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.report import ReportPoller
from marketsync.core.services.sync.base import AccountSyncService
from marketsync.core.sys.exceptions import AccountNotFoundError, OrderNotFoundError
from marketsync.core.sys.utils import now_utc

STRATEGY_TARGETED = "targeted"
STRATEGY_REPORT = "report"
STRATEGY_DIRECT = "direct"


@dataclass
class ReconcileResult:
    processed: int = 0
    updated_count: int = 0
    strategy: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CommissionReconciler(AccountSyncService):

    def __init__(self, vault: CredentialVault, adapters: AdapterRegistry, accounts: AccountRepository,
                 orders: OrderRepository, poller: Optional[ReportPoller] = None):
        super().__init__(vault, adapters)
        self.accounts = accounts
        self.orders = orders
        self.poller = poller or ReportPoller()

    # --- 写入 ---

    def reconcile(self, summaries: List[CommissionSummary], account_id: Optional[int] = None) -> ReconcileResult:
        """
        把佣金汇总写回订单。
        本地不存在的订单号计入 processed 但不计入 updated_count；单条失败只记日志。
        """
        result = ReconcileResult()
        synced_at = now_utc()
        for summary in summaries:
            if not summary.platform_order_no:
                continue
            result.processed += 1
            try:
                rows = self.orders.apply_commission(
                    summary.platform_order_no,
                    summary.amounts(),
                    summary.profit,
                    summary.currency,
                    synced_at,
                    account_id=account_id,
                )
            except Exception as e:
                self.log(f"❌ Commission write failed for {summary.platform_order_no}: {e}", level="error")
                continue
            if rows > 0:
                result.updated_count += 1
        return result

    # --- 获取 ---

    def fetch_summaries(self, adapter: PlatformAdapter, credentials: Credentials, account: PlatformAccount,
                        since: datetime, until: datetime, order_numbers: Optional[List[str]] = None,
                        full_window: bool = False) -> Tuple[str, List[CommissionSummary]]:
        if not full_window and isinstance(adapter, TargetedCommissionSource):
            return STRATEGY_TARGETED, adapter.fetch_commissions_for(
                credentials, list(order_numbers or []), account_id=account.id
            )

        if isinstance(adapter, ReportCommissionSource):
            rows = self.poller.run(adapter, credentials, since, until, account_id=account.id)
            strategy, summaries = STRATEGY_REPORT, adapter.summarize_report_rows(credentials, rows)
        else:
            strategy, summaries = STRATEGY_DIRECT, adapter.fetch_commissions(
                credentials, since, until, account_id=account.id
            )

        if not full_window and order_numbers is not None:
            wanted = set(order_numbers)
            summaries = [s for s in summaries if s.platform_order_no in wanted]
        return strategy, summaries

    def reconcile_account(self, account: PlatformAccount, since: datetime, until: datetime,
                          status: Optional[str] = None, full_window: bool = False,
                          statuses: Optional[Sequence[str]] = None) -> ReconcileResult:
        if status:
            statuses = [status]
        self.log(f"💰 [{account.platform}] Account {account.id} commission sync {since} -> {until}"
                 f" statuses={','.join(statuses) if statuses else '*'} full_window={full_window}")
        self.start_timer()

        adapter = self.resolve_adapter(account)
        credentials = self.decrypt_credentials(account)

        order_numbers = None
        if not full_window:
            order_numbers = self.orders.list_order_numbers(account.id, since, until, statuses=statuses)
            if not order_numbers:
                self.log(f"ℹ️ Account {account.id} has no local orders to reconcile")
                return ReconcileResult()

        strategy, summaries = self.fetch_summaries(
            adapter, credentials, account, since, until, order_numbers=order_numbers, full_window=full_window
        )
        result = self.reconcile(summaries, account_id=account.id)
        result.strategy = strategy
        if order_numbers is not None:
            result.processed = len(order_numbers)

        self.log(f"✅ Account {account.id} commissions ({strategy}): "
                 f"processed={result.processed} updated={result.updated_count}")
        self.end_timer("Commission Sync")
        return result

    def reconcile_settled(self, account: PlatformAccount, since: datetime, until: datetime) -> ReconcileResult:
        """定时对账入口: 只处理该平台可结算状态的订单"""
        adapter = self.resolve_adapter(account)
        return self.reconcile_account(account, since, until, statuses=adapter.COMMISSION_STATUSES)

    def sync_order_commission(self, order_id: int) -> ReconcileResult:
        """刷新单个订单的佣金"""
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        account = self.accounts.get(order["account_id"])
        if not account:
            raise AccountNotFoundError(order["account_id"])

        adapter = self.resolve_adapter(account)
        credentials = self.decrypt_credentials(account)

        # 非 targeted 平台: 从下单前一天到现在的窗口里筛出该订单
        until = now_utc()
        since = (order.get("order_time") or until - timedelta(days=30)) - timedelta(days=1)
        strategy, summaries = self.fetch_summaries(
            adapter, credentials, account, since, until, order_numbers=[order["platform_order_no"]]
        )
        result = self.reconcile(summaries, account_id=account.id)
        result.strategy = strategy
        result.processed = 1
        return result
