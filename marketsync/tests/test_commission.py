"""
佣金对账测试: 利润计算 / 写回计数 / 获取策略选择
"""
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest import mock

from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.services.platform.adapter import CommissionSummary
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.report import ReportPoller
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.commission import (
    STRATEGY_DIRECT,
    STRATEGY_REPORT,
    STRATEGY_TARGETED,
    CommissionReconciler,
)
from marketsync.core.services.sync.orders import OrderSyncService
from marketsync.core.sys.exceptions import OrderNotFoundError
from marketsync.core.sys.utils import now_utc
from marketsync.tests.fakes import (
    FakeAdapter,
    FakeReportAdapter,
    FakeShippedAdapter,
    FakeTargetedAdapter,
    FakeTargetedReportAdapter,
    SQLiteTestCase,
    remote_order,
    summary,
)

SINCE = datetime(2024, 4, 1)
UNTIL = datetime(2024, 6, 1)


class CommissionSummaryTest(unittest.TestCase):

    def test_profit_is_sum_of_all_line_items(self):
        s = summary(
            "P-1",
            accruals_for_sale=100,
            sale_commission=-15,
            processing_and_delivery=-5,
            refunds_and_cancellations=0,
            services_amount=-2,
            compensation_amount=0,
            money_transfer=0,
            others_amount=0,
        )
        self.assertEqual(s.profit, Decimal("78"))

    def test_empty_summary_has_zero_profit(self):
        self.assertEqual(CommissionSummary(platform_order_no="P-1").profit, Decimal("0"))

    def test_amounts_lists_eight_fields(self):
        amounts = summary("P-1", others_amount=3).amounts()
        self.assertEqual(len(amounts), 8)
        self.assertEqual(amounts["others_amount"], Decimal("3"))


class CommissionReconcilerTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)
        self.order_repo = OrderRepository()
        self.sleep = mock.Mock()
        self.reconciler = CommissionReconciler(
            self.vault, self.registry, self.account_repo, self.order_repo,
            poller=ReportPoller(delay=0, max_retries=3, sleep=self.sleep),
        )
        self.order_sync = OrderSyncService(
            self.vault, self.registry, self.statuses, self.account_repo, self.order_repo
        )

    def _seed(self, adapter, numbers=("P-1", "P-2"), status="delivered"):
        adapter.orders = [remote_order(n, status=status, order_time=datetime(2024, 5, 1)) for n in numbers]
        self.registry.register(adapter)
        account = self.account_repo.get(self.create_account(platform=adapter.platform_id))
        self.order_sync.sync_orders(account, SINCE, UNTIL)
        return account

    # --- 写入 ---

    def test_reconcile_counts_only_matching_orders(self):
        account = self._seed(FakeAdapter())
        result = self.reconciler.reconcile([
            summary("P-1", accruals_for_sale=100, sale_commission=-15, processing_and_delivery=-5,
                    services_amount=-2),
            summary("UNKNOWN", accruals_for_sale=1),
        ], account_id=account.id)

        self.assertEqual((result.processed, result.updated_count), (2, 1))
        order = self.order_repo.find_by_platform_order_no("P-1")
        self.assertEqual(order["profit_amount"], Decimal("78.00"))
        self.assertEqual(order["commission_currency"], "USD")
        self.assertIsNotNone(order["commission_synced_at"])
        untouched = self.order_repo.find_by_platform_order_no("P-2")
        self.assertIsNone(untouched["commission_synced_at"])

    def test_reconcile_is_scoped_to_account(self):
        self._seed(FakeAdapter())
        result = self.reconciler.reconcile([summary("P-1", accruals_for_sale=5)], account_id=999)
        self.assertEqual(result.updated_count, 0)

    def test_reconcile_twice_gives_same_values(self):
        account = self._seed(FakeAdapter())
        summaries = [summary("P-1", accruals_for_sale=50, sale_commission=-7.5)]
        self.reconciler.reconcile(summaries, account_id=account.id)
        self.reconciler.reconcile(summaries, account_id=account.id)
        self.assertEqual(self.order_repo.find_by_platform_order_no("P-1")["profit_amount"], Decimal("42.50"))

    # --- 策略 ---

    def test_targeted_strategy_queries_local_order_numbers(self):
        adapter = FakeTargetedAdapter(commissions=[summary("P-1", accruals_for_sale=10)])
        account = self._seed(adapter)

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL)

        self.assertEqual(result.strategy, STRATEGY_TARGETED)
        self.assertEqual(adapter.requested, [["P-1", "P-2"]])
        # processed 是参与对账的本地订单数，P-2 平台未返回
        self.assertEqual((result.processed, result.updated_count), (2, 1))
        self.assertNotIn("fetch_commissions", adapter.calls)

    def test_status_filter_limits_order_numbers(self):
        adapter = FakeTargetedAdapter()
        account = self._seed(adapter, numbers=("P-1",), status="delivered")
        adapter.orders = [remote_order("P-2", status="awaiting_deliver", order_time=datetime(2024, 5, 2))]
        self.order_sync.sync_orders(account, SINCE, UNTIL)

        self.reconciler.reconcile_account(account, SINCE, UNTIL, status="delivered")
        self.assertEqual(adapter.requested, [["P-1"]])

    def test_settled_statuses_come_from_adapter(self):
        adapter = FakeShippedAdapter(commissions=[summary("S-1", accruals_for_sale=12)])
        account = self._seed(adapter, numbers=("S-1",), status="FULFILLED")
        adapter.orders = [remote_order("S-2", status="NOT_STARTED", order_time=datetime(2024, 5, 2))]
        self.order_sync.sync_orders(account, SINCE, UNTIL)

        result = self.reconciler.reconcile_settled(account, SINCE, UNTIL)

        self.assertEqual(adapter.requested, [["S-1"]])
        self.assertEqual((result.processed, result.updated_count), (1, 1))

    def test_no_local_orders_skips_platform_call(self):
        adapter = FakeTargetedAdapter()
        self.registry.register(adapter)
        account = self.account_repo.get(self.create_account(platform=adapter.platform_id))

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL)

        self.assertEqual((result.processed, result.updated_count), (0, 0))
        self.assertEqual(adapter.calls, [])

    def test_report_strategy_polls_and_filters(self):
        adapter = FakeReportAdapter(report_rows=[
            {"posting_number": "P-1", "amount": 30},
            {"posting_number": "OTHER", "amount": 99},
        ])
        account = self._seed(adapter)

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL)

        self.assertEqual(result.strategy, STRATEGY_REPORT)
        self.assertEqual((result.processed, result.updated_count), (2, 1))
        self.assertEqual(adapter.calls.count("get_commission_report"), 1)
        self.assertEqual(self.order_repo.find_by_platform_order_no("P-1")["accruals_for_sale"], Decimal("30.00"))

    def test_direct_strategy_filters_to_local_orders(self):
        adapter = FakeAdapter(commissions=[
            summary("P-1", accruals_for_sale=10),
            summary("P-2", accruals_for_sale=20),
            summary("ELSEWHERE", accruals_for_sale=30),
        ])
        account = self._seed(adapter)

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL)

        self.assertEqual(result.strategy, STRATEGY_DIRECT)
        self.assertEqual((result.processed, result.updated_count), (2, 2))

    def test_full_window_skips_targeted_and_filter(self):
        adapter = FakeTargetedReportAdapter(report_rows=[{"posting_number": "P-1", "amount": 5}])
        account = self._seed(adapter)

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL, full_window=True)

        self.assertEqual(result.strategy, STRATEGY_REPORT)
        self.assertEqual(adapter.requested, [])
        self.assertEqual(result.updated_count, 1)

    def test_full_window_direct_processes_everything(self):
        adapter = FakeAdapter(commissions=[summary("P-1", accruals_for_sale=1), summary("X", accruals_for_sale=2)])
        account = self._seed(adapter)

        result = self.reconciler.reconcile_account(account, SINCE, UNTIL, full_window=True)

        self.assertEqual((result.processed, result.updated_count), (2, 1))

    # --- 单订单 ---

    def test_sync_order_commission_targeted(self):
        adapter = FakeTargetedAdapter(commissions=[summary("P-2", accruals_for_sale=7)])
        self._seed(adapter)
        order = self.order_repo.find_by_platform_order_no("P-2")

        result = self.reconciler.sync_order_commission(order["id"])

        self.assertEqual(adapter.requested, [["P-2"]])
        self.assertEqual(result.updated_count, 1)

    def test_sync_order_commission_direct_window_starts_day_before_order(self):
        adapter = FakeAdapter(commissions=[summary("P-1", accruals_for_sale=7), summary("P-2", accruals_for_sale=8)])
        self._seed(adapter)
        order = self.order_repo.find_by_platform_order_no("P-1")

        with mock.patch.object(adapter, "fetch_commissions", wraps=adapter.fetch_commissions) as fetch:
            result = self.reconciler.sync_order_commission(order["id"])

        since, until = fetch.call_args[0][1], fetch.call_args[0][2]
        self.assertEqual(since, datetime(2024, 5, 1) - timedelta(days=1))
        self.assertLessEqual(until, now_utc())
        self.assertEqual((result.processed, result.updated_count), (1, 1))

    def test_sync_order_commission_missing_order(self):
        with self.assertRaises(OrderNotFoundError):
            self.reconciler.sync_order_commission(12345)
