"""
订单同步编排测试 (SQLite 内存库 + 假适配器)
"""
from datetime import datetime
from decimal import Decimal
from unittest import mock

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from marketsync.core.components.db.client import DBClient
from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.repository.schema import orders
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.orders import OrderSyncService
from marketsync.core.sys.exceptions import (
    InvalidCredentialsError,
    OrderNotFoundError,
    PlatformAPIError,
    PlatformNotFoundError,
    RemoteOrderNotFoundError,
)
from marketsync.tests.fakes import FakeAdapter, FakeDetailAdapter, SQLiteTestCase, remote_order

SINCE = datetime(2024, 5, 1)
UNTIL = datetime(2024, 5, 2)


class OrderSyncServiceTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)
        self.adapter = FakeAdapter(orders=[remote_order("A-1"), remote_order("A-2", status="delivered")])
        self.registry.register(self.adapter)
        self.order_repo = OrderRepository()
        self.service = OrderSyncService(self.vault, self.registry, self.statuses, self.account_repo, self.order_repo)
        self.account = self.account_repo.get(self.create_account())

    def _count_orders(self) -> int:
        with DBClient.get_engine().connect() as conn:
            return conn.execute(select(func.count()).select_from(orders)).scalar()

    def test_first_sync_creates_orders_with_items(self):
        result = self.service.sync_orders(self.account, SINCE, UNTIL)

        self.assertEqual((result.total, result.created, result.updated, result.failed), (2, 2, 0, 0))
        order = self.order_repo.find_by_platform_order_no("A-1")
        self.assertEqual(order["status"], "ready_to_ship")
        self.assertEqual(order["platform_status"], "awaiting_deliver")
        self.assertEqual(order["user_id"], 1)
        self.assertEqual(order["account_id"], self.account.id)
        items = self.order_repo.get_items(order["id"])
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["platform_sku"], "SKU-A-1")
        self.assertEqual(self.order_repo.find_by_platform_order_no("A-2")["status"], "delivered")

    def test_second_sync_is_idempotent(self):
        self.service.sync_orders(self.account, SINCE, UNTIL)
        result = self.service.sync_orders(self.account, SINCE, UNTIL)

        self.assertEqual((result.total, result.created, result.updated), (2, 0, 2))
        self.assertEqual(self._count_orders(), 2)
        order = self.order_repo.find_by_platform_order_no("A-1")
        self.assertEqual(order["status"], "ready_to_ship")
        self.assertEqual(order["total_amount"], Decimal("10.00"))

    def test_update_only_touches_mutable_fields(self):
        self.service.sync_orders(self.account, SINCE, UNTIL)
        self.adapter.orders = [
            remote_order("A-1", status="delivered", total="12.50", recipient_name="Changed Name",
                         ship_time=datetime(2024, 5, 3, 8, 0, 0)),
        ]
        self.service.sync_orders(self.account, SINCE, UNTIL)

        order = self.order_repo.find_by_platform_order_no("A-1")
        self.assertEqual(order["status"], "delivered")
        self.assertEqual(order["total_amount"], Decimal("12.50"))
        self.assertEqual(order["ship_time"], datetime(2024, 5, 3, 8, 0, 0))
        self.assertIsNone(order["recipient_name"])

    def test_sync_never_overwrites_commission_fields(self):
        self.service.sync_orders(self.account, SINCE, UNTIL)
        self.order_repo.apply_commission(
            "A-1", {"accruals_for_sale": Decimal("100"), "sale_commission": Decimal("-15")},
            Decimal("85"), "USD", datetime(2024, 5, 2),
        )
        self.service.sync_orders(self.account, SINCE, UNTIL)

        order = self.order_repo.find_by_platform_order_no("A-1")
        self.assertEqual(order["accruals_for_sale"], Decimal("100.00"))
        self.assertEqual(order["sale_commission"], Decimal("-15.00"))
        self.assertEqual(order["profit_amount"], Decimal("85.00"))

    def test_unknown_status_is_pending(self):
        self.adapter.orders = [remote_order("A-9", status="mystery")]
        self.service.sync_orders(self.account, SINCE, UNTIL)
        self.assertEqual(self.order_repo.find_by_platform_order_no("A-9")["status"], "pending")

    def test_failed_order_is_skipped_and_last_sync_advances(self):
        self.adapter.orders = [remote_order("A-1"), remote_order(""), remote_order("A-3")]
        result = self.service.sync_orders(self.account, SINCE, UNTIL)

        self.assertEqual((result.total, result.created, result.failed), (3, 2, 1))
        self.assertIsNotNone(self.account_repo.get(self.account.id).last_sync_at)

    def test_persistence_error_is_isolated(self):
        original = self.order_repo.insert_order

        def flaky_insert(values, items):
            if values["platform_order_no"] == "A-1":
                raise RuntimeError("disk full")
            return original(values, items)

        with mock.patch.object(self.order_repo, "insert_order", side_effect=flaky_insert):
            result = self.service.sync_orders(self.account, SINCE, UNTIL)

        self.assertEqual((result.created, result.failed), (1, 1))
        self.assertIsNone(self.order_repo.find_by_platform_order_no("A-1"))

    def test_concurrent_insert_falls_back_to_update(self):
        self.service.sync_orders(self.account, SINCE, UNTIL)
        # 模拟查找时尚未存在、插入时已被另一进程写入
        with mock.patch.object(self.order_repo, "find_by_platform_order_no",
                               side_effect=[None, {"id": 1}, None, {"id": 2}]):
            result = self.service.sync_orders(self.account, SINCE, UNTIL)
        self.assertEqual((result.created, result.updated, result.failed), (0, 2, 0))
        self.assertEqual(self._count_orders(), 2)

    def test_duplicate_insert_raises_integrity_error(self):
        values = self.service._order_values(self.account, remote_order("A-1"))
        self.order_repo.insert_order(values, [])
        with self.assertRaises(IntegrityError):
            self.order_repo.insert_order(values, [])

    def test_undecryptable_credentials_abort(self):
        self.account.credentials = "garbage"
        with self.assertRaises(InvalidCredentialsError):
            self.service.sync_orders(self.account, SINCE, UNTIL)
        self.assertNotIn("fetch_orders", self.adapter.calls)

    def test_unregistered_platform(self):
        account = self.account_repo.get(self.create_account(platform="nowhere"))
        with self.assertRaises(PlatformNotFoundError):
            self.service.sync_orders(account, SINCE, UNTIL)


class SingleOrderSyncTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)
        self.adapter = FakeDetailAdapter(orders=[remote_order("X-1")])
        self.registry.register(self.adapter)
        self.order_repo = OrderRepository()
        self.service = OrderSyncService(self.vault, self.registry, self.statuses, self.account_repo, self.order_repo)
        self.account = self.account_repo.get(self.create_account(platform="fake_detail"))
        self.service.sync_orders(self.account, SINCE, UNTIL)
        self.order_id = self.order_repo.find_by_platform_order_no("X-1")["id"]

    def test_detail_endpoint_refreshes_order(self):
        self.adapter.details = {"X-1": remote_order("X-1", status="delivered", total="12.50")}

        order = self.service.sync_single_order(self.order_id)

        self.assertEqual(order["status"], "delivered")
        self.assertEqual(order["total_amount"], Decimal("12.50"))
        self.assertEqual(len(order["items"]), 1)
        self.assertEqual(self.adapter.calls.count("fetch_orders"), 1)

    def test_detail_failure_falls_back_to_order_window(self):
        self.adapter.detail_error = PlatformAPIError("HTTP 500", status_code=500)
        self.adapter.orders = [remote_order("OTHER"), remote_order("X-1", status="delivered")]

        with mock.patch.object(self.adapter, "fetch_orders", wraps=self.adapter.fetch_orders) as fetch:
            order = self.service.sync_single_order(self.order_id)

        self.assertEqual(order["status"], "delivered")
        _, since, until = fetch.call_args[0]
        self.assertEqual((since, until), (datetime(2024, 4, 30, 12), datetime(2024, 5, 2, 12)))

    def test_rejected_credentials_are_not_masked_by_fallback(self):
        self.adapter.detail_error = InvalidCredentialsError("HTTP 401")
        with self.assertRaises(InvalidCredentialsError):
            self.service.sync_single_order(self.order_id)
        self.assertEqual(self.adapter.calls.count("fetch_orders"), 1)

    def test_order_missing_on_platform(self):
        self.adapter.orders = []
        with self.assertRaises(RemoteOrderNotFoundError):
            self.service.sync_single_order(self.order_id)
        self.assertEqual(self.order_repo.get(self.order_id)["status"], "ready_to_ship")

    def test_unknown_local_order(self):
        with self.assertRaises(OrderNotFoundError):
            self.service.sync_single_order(4242)

    def test_commission_fields_untouched(self):
        self.order_repo.apply_commission("X-1", {"accruals_for_sale": Decimal("9")}, Decimal("9"), "USD",
                                         datetime(2024, 5, 3), account_id=self.account.id)
        self.adapter.details = {"X-1": remote_order("X-1", status="delivered")}

        order = self.service.sync_single_order(self.order_id)

        self.assertEqual(order["accruals_for_sale"], Decimal("9.00"))
        self.assertEqual(order["profit_amount"], Decimal("9.00"))
