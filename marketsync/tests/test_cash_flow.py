"""
现金流报表同步测试: 按 (账户, 账期起始) 幂等写入
"""
from datetime import datetime
from decimal import Decimal

from marketsync.core.repository.cash_flow_repo import CashFlowRepository
from marketsync.core.services.platform.adapter import CashFlowEntry
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.cash_flow import CashFlowService
from marketsync.core.sys.exceptions import CapabilityNotSupportedError, StatementNotFoundError
from marketsync.tests.fakes import FakeAdapter, FakeCashFlowAdapter, SQLiteTestCase

SINCE = datetime(2024, 4, 1)
UNTIL = datetime(2024, 5, 1)


def entry(begin, orders="1000.00", commission="-150.00", end=None):
    return CashFlowEntry(
        period_begin=begin,
        period_end=end,
        currency="RUB",
        orders_amount=Decimal(orders),
        returns_amount=Decimal("-20.00"),
        commission_amount=Decimal(commission),
        services_amount=Decimal("-35.50"),
        delivery_and_return_amount=Decimal("-60.00"),
    )


class CashFlowServiceTest(SQLiteTestCase):

    def setUp(self):
        super().setUp()
        self.registry = AdapterRegistry(StatusMappingRegistry())
        self.adapter = FakeCashFlowAdapter(cash_flows=[
            entry(datetime(2024, 4, 1), end=datetime(2024, 4, 15, 23, 59, 59)),
            entry(datetime(2024, 4, 16), end=datetime(2024, 4, 30, 23, 59, 59)),
            entry(None),
        ])
        self.registry.register(self.adapter)
        self.registry.register(FakeAdapter())
        self.repo = CashFlowRepository()
        self.service = CashFlowService(self.vault, self.registry, self.repo)
        self.account = self.account_repo.get(self.create_account(platform="fake_cash"))

    def test_first_sync_creates_statements(self):
        result = self.service.sync_cash_flows(self.account, SINCE, UNTIL)

        self.assertEqual(result.as_dict(), {"total": 3, "created": 2, "updated": 0, "skipped": 1})
        row = self.repo.find(self.account.id, datetime(2024, 4, 1))
        self.assertEqual(row["orders_amount"], Decimal("1000.00"))
        self.assertEqual(row["services_amount"], Decimal("-35.50"))
        self.assertEqual((row["user_id"], row["platform"], row["currency"]), (1, "fake_cash", "RUB"))

    def test_resync_updates_in_place(self):
        self.service.sync_cash_flows(self.account, SINCE, UNTIL)
        self.adapter.cash_flows = [entry(datetime(2024, 4, 1), orders="1200.00", commission="-180.00")]

        result = self.service.sync_cash_flows(self.account, SINCE, UNTIL)

        self.assertEqual((result.created, result.updated), (0, 1))
        row = self.repo.find(self.account.id, datetime(2024, 4, 1))
        self.assertEqual(row["orders_amount"], Decimal("1200.00"))
        self.assertEqual(row["commission_amount"], Decimal("-180.00"))
        self.assertEqual(self.service.list_statements(1).total, 2)

    def test_same_period_on_another_account_is_separate(self):
        other = self.account_repo.get(self.create_account(platform="fake_cash"))
        self.service.sync_cash_flows(self.account, SINCE, UNTIL)
        result = self.service.sync_cash_flows(other, SINCE, UNTIL)
        self.assertEqual(result.created, 2)

    def test_platform_without_cash_flows(self):
        account = self.account_repo.get(self.create_account(platform="fake"))
        with self.assertRaises(CapabilityNotSupportedError) as ctx:
            self.service.sync_cash_flows(account, SINCE, UNTIL)
        self.assertEqual(ctx.exception.code, 422)

    def test_list_newest_period_first(self):
        self.service.sync_cash_flows(self.account, SINCE, UNTIL)

        page = self.service.list_statements(1, account_id=self.account.id)

        self.assertEqual(page.total, 2)
        self.assertEqual([row["period_begin"] for row in page.items],
                         [datetime(2024, 4, 16), datetime(2024, 4, 1)])
        self.assertEqual(page.items[0]["orders_amount"], 1000.0)
        self.assertEqual(self.service.list_statements(2).total, 0)

    def test_get_statement(self):
        self.service.sync_cash_flows(self.account, SINCE, UNTIL)
        statement_id = self.repo.find(self.account.id, datetime(2024, 4, 16))["id"]
        self.assertEqual(self.service.get_statement(statement_id)["period_end"], datetime(2024, 4, 30, 23, 59, 59))
        with self.assertRaises(StatementNotFoundError):
            self.service.get_statement(999)
