"""
定时同步调度测试: 账户级失败隔离 / 回看窗口 / APScheduler 任务注册
"""
from datetime import datetime, timedelta
from unittest import mock

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.repository.schema import ACCOUNT_DISABLED
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.commission import CommissionReconciler
from marketsync.core.services.sync.orders import OrderSyncService
from marketsync.core.services.sync.scheduler import JOB_ID, SyncScheduler
from marketsync.tests.fakes import (
    FakeAdapter,
    FakeShippedAdapter,
    FakeTargetedAdapter,
    SQLiteTestCase,
    remote_order,
    summary,
)

NOW = datetime(2024, 5, 10, 9, 5, 0)


class SyncSchedulerTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)
        self.adapter = FakeAdapter(orders=[remote_order("S-1", status="delivered", order_time=NOW)])
        self.registry.register(self.adapter)
        self.order_repo = OrderRepository()
        self.order_sync = OrderSyncService(
            self.vault, self.registry, self.statuses, self.account_repo, self.order_repo
        )
        self.reconciler = CommissionReconciler(self.vault, self.registry, self.account_repo, self.order_repo)
        self.scheduler = SyncScheduler(
            self.account_repo, self.order_sync, self.reconciler, clock=lambda: NOW
        )

    def tearDown(self):
        self.scheduler.shutdown()
        super().tearDown()

    def test_failure_isolation(self):
        self.create_account()
        broken = self.create_account()
        self.create_account()
        # 第 2 个账户的密文损坏
        self.account_repo.update_credentials(broken, "not-a-ciphertext")

        result = self.scheduler.run_pass()

        self.assertEqual((result.success, result.failed), (2, 1))
        self.assertIsNone(self.account_repo.get(broken).last_sync_at)

    def test_only_active_accounts_are_processed(self):
        self.create_account()
        self.create_account(status=ACCOUNT_DISABLED)
        result = self.scheduler.run_pass()
        self.assertEqual((result.success, result.failed), (1, 0))

    def test_commission_failure_still_counts_as_success(self):
        self.create_account()
        with mock.patch.object(self.reconciler, "reconcile_settled", side_effect=RuntimeError("boom")):
            result = self.scheduler.run_pass()
        self.assertEqual((result.success, result.failed), (1, 0))

    def test_lookback_windows(self):
        self.create_account()
        with mock.patch.object(self.order_sync, "sync_orders") as sync_orders, \
                mock.patch.object(self.reconciler, "reconcile_settled") as reconcile:
            self.scheduler.run_pass()

        _, since, until = sync_orders.call_args[0]
        self.assertEqual((since, until), (NOW - timedelta(hours=2), NOW))
        _, since, until = reconcile.call_args[0]
        self.assertEqual((since, until), (NOW - timedelta(days=30), NOW))

    def test_pass_writes_orders_and_commissions(self):
        self.adapter.commissions = []
        self.create_account()
        self.scheduler.trigger_now()
        self.assertEqual(self.order_repo.find_by_platform_order_no("S-1")["status"], "delivered")
        self.assertIn("fetch_commissions", self.adapter.calls)

    def test_uninitialized_vault_fails_each_account(self):
        self.create_account()
        self.create_account()
        with mock.patch.object(self.order_sync, "vault", CredentialVault()), \
                mock.patch.object(self.scheduler, "log", wraps=self.scheduler.log) as log:
            result = self.scheduler.run_pass()

        self.assertEqual((result.success, result.failed), (0, 2))
        errors = [c for c in log.call_args_list if c[1].get("level") == "error"]
        self.assertEqual(len(errors), 2)
        self.assertIn("not initialized", errors[0][0][0])

    def test_shipped_orders_reconciled_when_platform_has_no_delivered_status(self):
        adapter = FakeShippedAdapter(
            orders=[remote_order("E-1", status="FULFILLED", order_time=NOW - timedelta(hours=1))],
            commissions=[summary("E-1", accruals_for_sale=50, sale_commission=-5)],
        )
        self.registry.register(adapter)
        self.create_account(platform="fake_shipped")

        result = self.scheduler.run_pass()

        self.assertEqual((result.success, result.failed), (1, 0))
        self.assertEqual(adapter.requested, [["E-1"]])
        order = self.order_repo.find_by_platform_order_no("E-1")
        self.assertEqual(order["status"], "shipped")
        self.assertEqual(float(order["accruals_for_sale"]), 50.0)
        self.assertIsNotNone(order["commission_synced_at"])

    def test_unsettled_orders_skipped_by_default(self):
        adapter = FakeTargetedAdapter(
            orders=[remote_order("T-1", status="awaiting_deliver", order_time=NOW - timedelta(hours=1))],
            commissions=[summary("T-1", accruals_for_sale=50)],
        )
        self.registry.register(adapter)
        self.create_account(platform="fake_targeted")

        self.scheduler.run_pass()

        self.assertEqual(adapter.requested, [])
        self.assertIsNone(self.order_repo.find_by_platform_order_no("T-1")["commission_synced_at"])

    def test_scheduled_pass_swallows_errors(self):
        with mock.patch.object(self.scheduler, "run_pass", side_effect=RuntimeError("db down")):
            self.scheduler._scheduled_pass()

    def test_start_registers_hourly_job(self):
        scheduler = self.scheduler.start()
        self.assertTrue(self.scheduler.running)
        job = scheduler.get_job(JOB_ID)
        self.assertIsNotNone(job)
        self.assertIn("minute='5'", str(job.trigger))
        # 重复启动返回同一实例
        self.assertIs(self.scheduler.start(), scheduler)

        self.scheduler.shutdown()
        self.assertFalse(self.scheduler.running)
