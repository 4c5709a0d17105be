# File: marketsync/core/services/sync/engine.py
"""
# ==============================================================================
# 模块名称: 同步引擎装配 (Sync Engine)
# ==============================================================================
#
# [Purpose / 用途]
# 显式构造 Vault / 状态映射 / 适配器注册表 / 仓库 / 服务，并注入彼此。
# 只读查询走 engine.queries，现金流走 engine.cash_flows。
# API 视图与管理命令通过 get_sync_engine() 取得单例；测试可直接构造 SyncEngine。
#
# ==============================================================================
"""

import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from marketsync.common.settings import Settings, settings as default_settings
from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import AccountRepository
from marketsync.core.repository.cash_flow_repo import CashFlowRepository
from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.platform.adapter import PlatformAdapter
from marketsync.core.services.platform.ebay.adapter import EbayAdapter
from marketsync.core.services.platform.ozon.adapter import OzonAdapter
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.report import ReportPoller
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.accounts import AccountService
from marketsync.core.services.sync.cash_flow import CashFlowService, CashFlowSyncResult
from marketsync.core.services.sync.commission import CommissionReconciler, ReconcileResult
from marketsync.core.services.sync.orders import OrderSyncService, SyncOrdersResult
from marketsync.core.services.sync.queries import OrderQueryService
from marketsync.core.services.sync.scheduler import PassResult, SyncScheduler
from marketsync.core.sys.exceptions import AppValidationError
from marketsync.core.sys.utils import now_utc


class SyncEngine:

    def __init__(self, vault: CredentialVault, adapters: Optional[List[PlatformAdapter]] = None,
                 config: Settings = default_settings, poller: Optional[ReportPoller] = None):
        self.config = config
        self.vault = vault
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)

        self.account_repo = AccountRepository()
        self.order_repo = OrderRepository()
        self.request_log = RequestLogRepository()
        self.cash_flow_repo = CashFlowRepository()

        if adapters is None:
            adapters = [
                OzonAdapter(request_log=self.request_log),
                EbayAdapter(request_log=self.request_log),
            ]
        for adapter in adapters:
            self.registry.register(adapter)

        self.accounts = AccountService(vault, self.registry, self.account_repo)
        self.order_sync = OrderSyncService(vault, self.registry, self.statuses, self.account_repo, self.order_repo)
        self.queries = OrderQueryService(self.order_repo, self.request_log)
        self.cash_flows = CashFlowService(vault, self.registry, self.cash_flow_repo)
        self.reconciler = CommissionReconciler(
            vault,
            self.registry,
            self.account_repo,
            self.order_repo,
            poller=poller or ReportPoller(
                delay=config.REPORT_POLL_DELAY_SECONDS,
                max_retries=config.REPORT_POLL_MAX_RETRIES,
            ),
        )
        self.scheduler = SyncScheduler(
            self.account_repo,
            self.order_sync,
            self.reconciler,
            cron_minute=config.SYNC_CRON_MINUTE,
            order_lookback_hours=config.SYNC_ORDER_LOOKBACK_HOURS,
            commission_lookback_days=config.SYNC_COMMISSION_LOOKBACK_DAYS,
        )

    # --- 手动入口 ---

    @staticmethod
    def _window(since: Optional[datetime], until: Optional[datetime], default_days: int):
        until = until or now_utc()
        since = since or until - timedelta(days=default_days)
        if since >= until:
            raise AppValidationError("since must be earlier than until",
                                     details={"since": since.isoformat(), "until": until.isoformat()})
        return since, until

    def sync_account_orders(self, account_id: int, since: Optional[datetime] = None,
                            until: Optional[datetime] = None) -> SyncOrdersResult:
        account = self.accounts.get_account(account_id)
        since, until = self._window(since, until, self.config.MANUAL_ORDER_WINDOW_DAYS)
        return self.order_sync.sync_orders(account, since, until)

    def sync_account_commissions(self, account_id: int, since: Optional[datetime] = None,
                                 until: Optional[datetime] = None, status: Optional[str] = None,
                                 full_window: bool = False) -> ReconcileResult:
        account = self.accounts.get_account(account_id)
        since, until = self._window(since, until, self.config.MANUAL_COMMISSION_WINDOW_DAYS)
        return self.reconciler.reconcile_account(account, since, until, status=status, full_window=full_window)

    def sync_order_commission(self, order_id: int) -> ReconcileResult:
        return self.reconciler.sync_order_commission(order_id)

    def sync_single_order(self, order_id: int) -> Dict[str, Any]:
        return self.order_sync.sync_single_order(order_id)

    def sync_account_cash_flows(self, account_id: int, since: Optional[datetime] = None,
                                until: Optional[datetime] = None) -> CashFlowSyncResult:
        account = self.accounts.get_account(account_id)
        since, until = self._window(since, until, self.config.MANUAL_CASH_FLOW_WINDOW_DAYS)
        return self.cash_flows.sync_cash_flows(account, since, until)

    def test_account(self, account_id: int) -> bool:
        return self.accounts.test_account(account_id)

    def platforms(self) -> List[Dict[str, Any]]:
        return self.registry.platforms()

    def trigger_pass(self) -> PassResult:
        return self.scheduler.trigger_now()


_engine: Optional[SyncEngine] = None
_engine_lock = threading.Lock()


def build_engine(config: Settings = default_settings) -> SyncEngine:
    vault = CredentialVault(config.CREDENTIAL_SECRET_KEY or None)
    return SyncEngine(vault, config=config)


def get_sync_engine() -> SyncEngine:
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_engine()
        return _engine


def reset_sync_engine() -> None:
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.scheduler.shutdown()
        _engine = None
