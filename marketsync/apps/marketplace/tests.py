import json
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse

from marketsync.core.components.db.client import DBClient
from marketsync.core.components.security import CredentialVault
from marketsync.core.repository import schema
from marketsync.core.services.sync.engine import SyncEngine
from marketsync.core.sys.exceptions import InvalidCredentialsError
from marketsync.tests.fakes import TEST_KEY, FakeAdapter, FakeTargetedAdapter, remote_order, summary


class MarketplaceApiTest(TestCase):

    def setUp(self):
        DBClient.configure("sqlite://")
        schema.initialize()
        self.adapter = FakeTargetedAdapter(
            orders=[remote_order("M-1", status="delivered")],
            commissions=[summary("M-1", accruals_for_sale=100, sale_commission=-15, processing_and_delivery=-5,
                                 services_amount=-2)],
        )
        self.engine = SyncEngine(CredentialVault(TEST_KEY), adapters=[self.adapter, FakeAdapter()])
        patcher = mock.patch("marketsync.apps.marketplace.api.get_sync_engine", return_value=self.engine)
        patcher.start()
        self.addCleanup(patcher.stop)

        User = get_user_model()
        self.user = User.objects.create_user(username="seller", password="pw")
        self.other = User.objects.create_user(username="other", password="pw")
        self.staff = User.objects.create_user(username="ops", password="pw", is_staff=True)
        self.client = Client()
        self.client.force_login(self.user)

        self.account_id = self.engine.accounts.create_account(
            self.user.id, "fake_targeted", "Seller Shop", {"token": "tok-000111"}
        )

    def tearDown(self):
        schema.drop_all()

    def _post(self, name, data=None, **kwargs):
        return self.client.post(
            reverse(f"marketplace:{name}", kwargs=kwargs),
            data=json.dumps(data or {}),
            content_type="application/json",
        )

    def test_login_required(self):
        response = Client().get(reverse("marketplace:api_platforms"))
        self.assertEqual(response.status_code, 302)

    def test_list_platforms(self):
        response = self.client.get(reverse("marketplace:api_platforms"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual([p["platform"] for p in body["data"]], ["fake", "fake_targeted"])
        self.assertTrue(body["meta"]["trace_id"])

    def test_create_account_and_detail_masks_credentials(self):
        response = self.client.post(
            reverse("marketplace:api_accounts"),
            data=json.dumps({"platform": "fake", "shop_name": "Second", "credentials": {"token": "abcdef9999"}}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        account_id = response.json()["data"]["account_id"]

        detail = self.client.get(reverse("marketplace:api_account_detail", kwargs={"account_id": account_id}))
        self.assertEqual(detail.json()["data"]["credentials"]["token"], "******9999")

    def test_create_account_validation_error(self):
        response = self._post("api_accounts", {"platform": "fake", "shop_name": "X", "credentials": {}})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["errors"], {"missing": ["token"]})

    def test_create_account_unknown_platform(self):
        response = self._post("api_accounts", {"platform": "mars", "shop_name": "X", "credentials": {}})
        self.assertEqual(response.status_code, 404)

    def test_sync_orders_then_commissions(self):
        response = self._post("api_sync_orders", {"since": "2024-04-30T00:00:00Z", "until": "2024-05-02T00:00:00Z"},
                              account_id=self.account_id)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"total": 1, "created": 1, "updated": 0, "failed": 0})

        response = self._post("api_sync_commissions",
                              {"since": "2024-04-30T00:00:00Z", "until": "2024-05-02T00:00:00Z",
                               "status": "delivered"},
                              account_id=self.account_id)
        self.assertEqual(response.json()["data"], {"processed": 1, "updated_count": 1, "strategy": "targeted"})
        order = self.engine.order_repo.find_by_platform_order_no("M-1")
        self.assertEqual(float(order["profit_amount"]), 78.0)

    def test_sync_order_commission(self):
        self._post("api_sync_orders", {"since": "2024-04-30T00:00:00Z", "until": "2024-05-02T00:00:00Z"},
                   account_id=self.account_id)
        order = self.engine.order_repo.find_by_platform_order_no("M-1")

        response = self._post("api_sync_order_commission", order_id=order["id"])
        self.assertEqual(response.json()["data"]["updated_count"], 1)

        missing = self._post("api_sync_order_commission", order_id=9999)
        self.assertEqual(missing.status_code, 404)

    def test_invalid_window(self):
        response = self._post("api_sync_orders", {"since": "yesterday"}, account_id=self.account_id)
        self.assertEqual(response.status_code, 422)
        response = self._post("api_sync_orders", {"since": "2024-05-02T00:00:00Z", "until": "2024-05-01T00:00:00Z"},
                              account_id=self.account_id)
        self.assertEqual(response.status_code, 422)

    def test_unknown_status_filter(self):
        response = self._post("api_sync_commissions", {"status": "lost"}, account_id=self.account_id)
        self.assertEqual(response.status_code, 422)

    def test_other_users_account_is_hidden(self):
        self.client.force_login(self.other)
        response = self._post("api_sync_orders", account_id=self.account_id)
        self.assertEqual(response.status_code, 404)

    def test_connection_rejected(self):
        self.adapter.error = InvalidCredentialsError("HTTP 401")
        response = self._post("api_test_account", account_id=self.account_id)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["status"], "error")

    def test_connection_ok(self):
        response = self._post("api_test_account", account_id=self.account_id)
        self.assertEqual(response.json()["data"], {"account_id": self.account_id, "connected": True})

    def test_trigger_requires_staff(self):
        self.assertEqual(self._post("api_trigger_sync").status_code, 403)

        self.client.force_login(self.staff)
        response = self._post("api_trigger_sync")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"success": 1, "failed": 0})

    def test_get_not_allowed_on_sync(self):
        response = self.client.get(reverse("marketplace:api_sync_orders", kwargs={"account_id": self.account_id}))
        self.assertEqual(response.status_code, 405)

    # --- 账户管理 ---

    def _sync_seed_orders(self):
        self._post("api_sync_orders", {"since": "2024-04-30T00:00:00Z", "until": "2024-05-02T00:00:00Z"},
                   account_id=self.account_id)
        return self.engine.order_repo.find_by_platform_order_no("M-1")

    def test_list_accounts(self):
        self.engine.accounts.create_account(self.other.id, "fake", "Not Mine", {"token": "zzz"})
        response = self.client.get(reverse("marketplace:api_accounts"))
        body = response.json()
        self.assertEqual([a["id"] for a in body["data"]], [self.account_id])
        self.assertEqual(body["meta"]["total"], 1)
        self.assertNotIn("credentials", body["data"][0])

    def test_update_and_delete_account(self):
        url = reverse("marketplace:api_account_detail", kwargs={"account_id": self.account_id})
        response = self.client.put(url, data=json.dumps({"shop_name": "Renamed", "status": 0}),
                                   content_type="application/json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["shop_name"], "Renamed")
        self.assertEqual(response.json()["data"]["status"], 0)

        self.assertEqual(self.client.delete(url).status_code, 200)
        self.assertEqual(self.client.get(url).status_code, 404)

    def test_cannot_modify_other_users_account(self):
        self.client.force_login(self.other)
        url = reverse("marketplace:api_account_detail", kwargs={"account_id": self.account_id})
        self.assertEqual(self.client.delete(url).status_code, 404)
        self.assertIsNotNone(self.engine.account_repo.get(self.account_id))

    def test_request_logs(self):
        response = self.client.get(reverse("marketplace:api_request_logs", kwargs={"account_id": self.account_id}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], [])

        response = self.client.get(reverse("marketplace:api_request_logs", kwargs={"account_id": self.account_id}),
                                   {"limit": "many"})
        self.assertEqual(response.status_code, 422)

    # --- 订单查询 / 单订单同步 ---

    def test_list_and_detail_orders(self):
        order = self._sync_seed_orders()

        response = self.client.get(reverse("marketplace:api_orders"), {"status": "delivered,shipped"})
        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual([o["platform_order_no"] for o in body["data"]], ["M-1"])
        self.assertEqual((body["meta"]["total"], body["meta"]["page"], body["meta"]["page_size"]), (1, 1, 10))
        self.assertEqual(len(body["data"][0]["items"]), 1)

        detail = self.client.get(reverse("marketplace:api_order_detail", kwargs={"order_id": order["id"]}))
        self.assertEqual(detail.json()["data"]["platform_order_no"], "M-1")

        self.client.force_login(self.other)
        hidden = self.client.get(reverse("marketplace:api_order_detail", kwargs={"order_id": order["id"]}))
        self.assertEqual(hidden.status_code, 404)
        self.assertEqual(self.client.get(reverse("marketplace:api_orders")).json()["data"], [])

    def test_list_orders_rejects_bad_filters(self):
        self.assertEqual(self.client.get(reverse("marketplace:api_orders"), {"deadline": "soon"}).status_code, 422)
        self.assertEqual(self.client.get(reverse("marketplace:api_orders"), {"page": "x"}).status_code, 422)

    def test_sync_single_order_falls_back_to_list(self):
        order = self._sync_seed_orders()
        self.adapter.orders = [remote_order("M-1", status="awaiting_deliver")]

        response = self._post("api_sync_single_order", order_id=order["id"])

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "ready_to_ship")
        self.assertNotIn("raw_data", response.json()["data"])

    def test_sync_single_order_missing_on_platform(self):
        order = self._sync_seed_orders()
        self.adapter.orders = []
        response = self._post("api_sync_single_order", order_id=order["id"])
        self.assertEqual(response.status_code, 404)

    # --- 现金流 ---

    def test_cash_flow_sync_unsupported_platform(self):
        response = self._post("api_sync_cash_flows", account_id=self.account_id)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["errors"]["capability"], "cash flow statements")

    def test_cash_flow_list_and_detail(self):
        self.assertEqual(self.client.get(reverse("marketplace:api_cash_flows")).json()["data"], [])
        missing = self.client.get(reverse("marketplace:api_cash_flow_detail", kwargs={"statement_id": 1}))
        self.assertEqual(missing.status_code, 404)

        self.client.force_login(self.other)
        response = self.client.get(reverse("marketplace:api_cash_flows"), {"account_id": self.account_id})
        self.assertEqual(response.status_code, 404)
