# File: marketsync/core/services/sync/cash_flow.py
"""
# ==============================================================================
# 模块名称: 现金流报表同步 (Cash Flow Statements)
# ==============================================================================
#
# [Purpose / 用途]
# 拉取平台按结算周期汇总的现金流 (销售额 / 退货 / 佣金 / 服务费 / 物流)，
# 以 (账户, period_begin) 为键写入 cash_flow_statements: 已存在则更新，否则插入。
#
# [Result / 结果]
# total = 平台返回条数；skipped = 缺少 period_begin 的条数。
# 只有适配器实现 CashFlowSource 的平台支持 (目前为 Ozon)。
#
# ==============================================================================
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import PlatformAccount
from marketsync.core.repository.cash_flow_repo import CashFlowRepository
from marketsync.core.services.platform.adapter import CashFlowEntry, CashFlowSource
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.sync.base import AccountSyncService, Page, clamp_page
from marketsync.core.sys.exceptions import CapabilityNotSupportedError, StatementNotFoundError
from marketsync.core.sys.utils import now_utc


@dataclass
class CashFlowSyncResult:
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class CashFlowService(AccountSyncService):

    def __init__(self, vault: CredentialVault, adapters: AdapterRegistry, statements: CashFlowRepository):
        super().__init__(vault, adapters)
        self.statements = statements

    def sync_cash_flows(self, account: PlatformAccount, since: datetime, until: datetime) -> CashFlowSyncResult:
        adapter = self.resolve_adapter(account)
        if not isinstance(adapter, CashFlowSource):
            raise CapabilityNotSupportedError(account.platform, "cash flow statements")

        self.log(f"💵 [{account.platform}] Account {account.id} cash flow sync {since} -> {until}")
        self.start_timer()
        credentials = self.decrypt_credentials(account)
        entries = adapter.fetch_cash_flows(credentials, since, until, account_id=account.id)

        result = CashFlowSyncResult(total=len(entries))
        synced_at = now_utc()
        for entry in entries:
            if entry.period_begin is None:
                result.skipped += 1
                continue
            values = self._values(entry, synced_at)
            try:
                existing = self.statements.find(account.id, entry.period_begin)
                if existing:
                    self.statements.update(existing["id"], values)
                    result.updated += 1
                else:
                    self.statements.insert({
                        **values,
                        "user_id": account.user_id,
                        "account_id": account.id,
                        "platform": account.platform,
                        "period_begin": entry.period_begin,
                    })
                    result.created += 1
            except Exception as e:
                self.log(f"❌ Cash flow period {entry.period_begin} not saved: {e}", level="error")

        self.log(f"✅ Account {account.id} cash flows: total={result.total} created={result.created} "
                 f"updated={result.updated} skipped={result.skipped}")
        self.end_timer("Cash Flow Sync")
        return result

    @staticmethod
    def _values(entry: CashFlowEntry, synced_at: datetime) -> Dict[str, Any]:
        return {
            "period_end": entry.period_end,
            "currency": entry.currency,
            "orders_amount": entry.orders_amount,
            "returns_amount": entry.returns_amount,
            "commission_amount": entry.commission_amount,
            "services_amount": entry.services_amount,
            "delivery_and_return_amount": entry.delivery_and_return_amount,
            "synced_at": synced_at,
        }

    def list_statements(self, user_id: int, account_id: Optional[int] = None, page: Optional[int] = None,
                        page_size: Optional[int] = None) -> Page:
        page, page_size = clamp_page(page, page_size, default_size=20)
        df, total = self.statements.list_df(user_id, account_id=account_id, page=page, page_size=page_size)
        return Page(items=self.statements.to_records(df), total=total, page=page, page_size=page_size)

    def get_statement(self, statement_id: int) -> Dict[str, Any]:
        statement = self.statements.get(statement_id)
        if not statement:
            raise StatementNotFoundError(statement_id)
        return statement
