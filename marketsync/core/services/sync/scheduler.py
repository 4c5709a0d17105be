# File: marketsync/core/services/sync/scheduler.py
"""
# ==============================================================================
# 模块名称: 定时同步调度 (Sync Scheduler)
# ==============================================================================
#
# [Purpose / 用途]
# 每小时第 N 分钟 (默认 5) 对所有启用账户执行一轮:
#   1. 订单同步 (最近 2 小时)
#   2. 佣金对账 (最近 30 天内、处于平台可结算状态的订单，见 reconcile_settled)
#
# [Isolation / 隔离]
# - 单个账户的订单同步失败 (凭证 / 网络 / 平台) 计为 failed，继续下一个账户
# - 佣金对账失败只记日志，账户仍计为 success
# - 凭证库未初始化 (VaultNotInitializedError) 同样按账户计为 failed，本轮照常跑完
#
# [Concurrency / 并发]
# APScheduler BackgroundScheduler，max_instances=1 + coalesce 防止任务堆积。
# trigger_now 可与定时任务并行，写入以订单号为键，重复执行无副作用。
#
# ==============================================================================
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from marketsync.core.repository.account_repo import AccountRepository, PlatformAccount
from marketsync.core.services.base import BaseService
from marketsync.core.services.sync.commission import CommissionReconciler
from marketsync.core.services.sync.orders import OrderSyncService
from marketsync.core.sys.context import clear_context, new_trace
from marketsync.core.sys.utils import now_utc

JOB_ID = "marketplace_sync_pass"


@dataclass
class PassResult:
    success: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class SyncScheduler(BaseService):

    def __init__(self, accounts: AccountRepository, order_sync: OrderSyncService,
                 reconciler: CommissionReconciler, cron_minute: int = 5,
                 order_lookback_hours: int = 2, commission_lookback_days: int = 30,
                 clock: Callable[[], datetime] = now_utc):
        super().__init__()
        self.accounts = accounts
        self.order_sync = order_sync
        self.reconciler = reconciler
        self.cron_minute = cron_minute
        self.order_lookback = timedelta(hours=order_lookback_hours)
        self.commission_lookback = timedelta(days=commission_lookback_days)
        self.clock = clock
        self._scheduler: Optional[BackgroundScheduler] = None

    # --- 生命周期 ---

    def start(self) -> BackgroundScheduler:
        if self._scheduler is not None and self._scheduler.running:
            return self._scheduler

        self._scheduler = BackgroundScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
            timezone="UTC",
        )
        self._scheduler.add_job(
            self._scheduled_pass,
            trigger=CronTrigger(minute=self.cron_minute, timezone="UTC"),
            id=JOB_ID,
            name="Marketplace order & commission sync",
            replace_existing=True,
        )
        self._scheduler.start()
        self.log(f"⏰ Sync scheduler started (every hour at minute {self.cron_minute})")
        return self._scheduler

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            self.log("🛑 Sync scheduler stopped")
        self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # --- 执行 ---

    def _scheduled_pass(self) -> None:
        new_trace("SyncScheduler", username="Scheduler")
        try:
            self.run_pass()
        except Exception as e:
            # 定时任务只记录，不向 APScheduler 抛出
            self.log(f"🔥 Sync pass aborted: {e}", level="error")
        finally:
            clear_context()

    def trigger_now(self) -> PassResult:
        """手动触发一轮 (同步执行)"""
        self.log("▶️ Manual sync pass triggered")
        return self.run_pass()

    def run_pass(self) -> PassResult:
        self.start_timer()
        now = self.clock()
        accounts = self.accounts.list_active()
        self.log(f"🔄 Sync pass started: {len(accounts)} active accounts")

        result = PassResult()
        for account in accounts:
            if self.sync_account(account, now):
                result.success += 1
            else:
                result.failed += 1

        self.log(f"✅ Sync pass finished: success={result.success} failed={result.failed}")
        self.end_timer("Sync Pass")
        return result

    def sync_account(self, account: PlatformAccount, now: datetime) -> bool:
        try:
            self.order_sync.sync_orders(account, now - self.order_lookback, now)
        except Exception as e:
            self.log(f"❌ [{account.platform}] Account {account.id} order sync failed: {e}", level="error")
            return False

        try:
            self.reconciler.reconcile_settled(account, now - self.commission_lookback, now)
        except Exception as e:
            self.log(f"⚠️ [{account.platform}] Account {account.id} commission sync failed: {e}",
                     level="warning")
        return True
