"""
账户服务与同步引擎装配测试
"""
from datetime import datetime, timedelta
from unittest import mock

from marketsync.common.settings import settings
from marketsync.core.repository.schema import ACCOUNT_ACTIVE, ACCOUNT_DISABLED, ACCOUNT_EXPIRED
from marketsync.core.services.sync.engine import SyncEngine
from marketsync.core.sys.exceptions import (
    AccountNotFoundError,
    AppValidationError,
    InvalidCredentialsError,
    PlatformNotFoundError,
)
from marketsync.tests.fakes import (
    FakeAdapter,
    FakeCashFlowAdapter,
    FakeTargetedAdapter,
    SQLiteTestCase,
    remote_order,
)


class AccountServiceTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.adapter = FakeAdapter()
        self.engine = SyncEngine(self.vault, adapters=[self.adapter])
        self.accounts = self.engine.accounts

    def test_create_account_encrypts_credentials(self):
        account_id = self.accounts.create_account(1, "fake", "My Shop", {"token": "  tok-123456  "})
        account = self.account_repo.get(account_id)
        self.assertNotIn("tok-123456", account.credentials)
        self.assertEqual(
            self.vault.decrypt_document(account.credentials),
            {"token": "tok-123456", "region": "EU"},
        )
        self.assertEqual(account.status, ACCOUNT_ACTIVE)

    def test_create_account_missing_required_field(self):
        with self.assertRaises(AppValidationError) as ctx:
            self.accounts.create_account(1, "fake", "My Shop", {"region": "US"})
        self.assertEqual(ctx.exception.details, {"missing": ["token"]})

    def test_create_account_requires_shop_name(self):
        with self.assertRaises(AppValidationError):
            self.accounts.create_account(1, "fake", "", {"token": "t"})

    def test_create_account_unknown_platform(self):
        with self.assertRaises(PlatformNotFoundError):
            self.accounts.create_account(1, "nowhere", "Shop", {"token": "t"})

    def test_get_missing_account(self):
        with self.assertRaises(AccountNotFoundError):
            self.accounts.get_account(404)

    def test_masked_credentials(self):
        account_id = self.create_account(credentials={"token": "abcdef123456"})
        self.assertEqual(self.accounts.masked_credentials(account_id), {"token": "********3456"})

    def test_rejected_credentials_mark_account_expired(self):
        account_id = self.create_account()
        self.adapter.error = InvalidCredentialsError("HTTP 401")
        with self.assertRaises(InvalidCredentialsError):
            self.accounts.test_account(account_id)
        self.assertEqual(self.account_repo.get(account_id).status, ACCOUNT_EXPIRED)

    def test_successful_test_restores_expired_account(self):
        account_id = self.create_account(status=ACCOUNT_EXPIRED)
        self.assertTrue(self.accounts.test_account(account_id))
        self.assertEqual(self.account_repo.get(account_id).status, ACCOUNT_ACTIVE)

    def test_list_accounts_newest_first_without_credentials(self):
        first = self.create_account()
        second = self.create_account()
        self.create_account(user_id=2)

        page = self.accounts.list_accounts(1, page=1, page_size=1)

        self.assertEqual(page.total, 2)
        self.assertEqual([row["id"] for row in page.items], [second])
        self.assertNotIn("credentials", page.items[0])
        self.assertEqual(page.meta(), {"total": 2, "page": 1, "page_size": 1})
        self.assertEqual([row["id"] for row in self.accounts.list_accounts(1, page=2, page_size=1).items], [first])

    def test_update_account_fields(self):
        account_id = self.create_account()
        account = self.accounts.update_account(account_id, shop_name="Renamed", status=ACCOUNT_DISABLED)
        self.assertEqual((account.shop_name, account.status), ("Renamed", ACCOUNT_DISABLED))
        # 未提供凭证时保持原值
        self.assertEqual(self.vault.decrypt_document(account.credentials), {"token": "secret-token"})

    def test_update_account_replaces_credentials(self):
        account_id = self.create_account()
        account = self.accounts.update_account(account_id, credentials={"token": "new-token", "region": "US"})
        self.assertEqual(self.vault.decrypt_document(account.credentials), {"token": "new-token", "region": "US"})

        with self.assertRaises(AppValidationError) as ctx:
            self.accounts.update_account(account_id, credentials={"region": "US"})
        self.assertEqual(ctx.exception.details, {"missing": ["token"]})

    def test_update_account_unknown_status(self):
        account_id = self.create_account()
        with self.assertRaises(AppValidationError):
            self.accounts.update_account(account_id, status=9)

    def test_delete_account_keeps_orders(self):
        account_id = self.create_account()
        self.adapter.orders = [remote_order("D-1")]
        self.engine.sync_account_orders(account_id, since=datetime(2024, 4, 30), until=datetime(2024, 5, 2))

        self.accounts.delete_account(account_id)

        with self.assertRaises(AccountNotFoundError):
            self.accounts.get_account(account_id)
        self.assertIsNotNone(self.engine.order_repo.find_by_platform_order_no("D-1"))


class SyncEngineTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.adapter = FakeTargetedAdapter(orders=[remote_order("E-1")])
        self.engine = SyncEngine(self.vault, adapters=[self.adapter, FakeAdapter()])

    def test_default_adapters(self):
        engine = SyncEngine(self.vault)
        self.assertEqual([p["platform"] for p in engine.platforms()], ["ebay", "ozon"])
        self.assertEqual(engine.statuses.resolve("ozon", "delivered"), "delivered")
        self.assertEqual(engine.statuses.resolve("ebay", "FULFILLED"), "shipped")

    def test_manual_order_sync_default_window(self):
        account_id = self.create_account(platform="fake_targeted")
        with mock.patch.object(self.engine.order_sync, "sync_orders",
                               wraps=self.engine.order_sync.sync_orders) as sync_orders:
            result = self.engine.sync_account_orders(account_id)
        self.assertEqual(result.created, 1)
        _, since, until = sync_orders.call_args[0]
        self.assertEqual(until - since, timedelta(days=settings.MANUAL_ORDER_WINDOW_DAYS))

    def test_manual_commission_sync_default_window(self):
        account_id = self.create_account(platform="fake_targeted")
        with mock.patch.object(self.engine.reconciler, "reconcile_account") as reconcile:
            self.engine.sync_account_commissions(account_id, status="delivered")
        _, since, until = reconcile.call_args[0]
        self.assertEqual(until - since, timedelta(days=settings.MANUAL_COMMISSION_WINDOW_DAYS))
        self.assertEqual(reconcile.call_args[1], {"status": "delivered", "full_window": False})

    def test_manual_cash_flow_sync_default_window(self):
        engine = SyncEngine(self.vault, adapters=[FakeCashFlowAdapter()])
        account_id = self.create_account(platform="fake_cash")
        with mock.patch.object(engine.cash_flows, "sync_cash_flows") as sync_cash_flows:
            engine.sync_account_cash_flows(account_id)
        _, since, until = sync_cash_flows.call_args[0]
        self.assertEqual(until - since, timedelta(days=settings.MANUAL_CASH_FLOW_WINDOW_DAYS))

    def test_inverted_window_rejected(self):
        account_id = self.create_account(platform="fake_targeted")
        with self.assertRaises(AppValidationError):
            self.engine.sync_account_orders(account_id, since=datetime(2024, 5, 2), until=datetime(2024, 5, 1))

    def test_unknown_account(self):
        with self.assertRaises(AccountNotFoundError):
            self.engine.sync_account_orders(999)

    def test_trigger_pass(self):
        self.create_account(platform="fake_targeted")
        self.create_account(platform="fake")
        result = self.engine.trigger_pass()
        self.assertEqual(result.as_dict(), {"success": 2, "failed": 0})
