"""
状态映射表 / 适配器注册表测试
"""
import unittest

from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.status import (
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_SHIPPED,
    StatusMappingRegistry,
)
from marketsync.core.sys.exceptions import PlatformNotFoundError
from marketsync.tests.fakes import FakeAdapter, FakeTargetedAdapter


class StatusMappingRegistryTest(unittest.TestCase):

    def setUp(self):
        self.registry = StatusMappingRegistry()
        self.registry.register("ozon", {"delivering": STATUS_SHIPPED, "cancelled": STATUS_CANCELLED})

    def test_resolve_known_status(self):
        self.assertEqual(self.registry.resolve("ozon", "delivering"), STATUS_SHIPPED)

    def test_unknown_status_defaults_to_pending(self):
        self.assertEqual(self.registry.resolve("ozon", "teleported"), STATUS_PENDING)
        self.assertEqual(self.registry.resolve("unknown-platform", "delivering"), STATUS_PENDING)
        self.assertEqual(self.registry.resolve("ozon", ""), STATUS_PENDING)

    def test_register_replaces_previous_mapping(self):
        self.registry.register("ozon", {"delivering": STATUS_CANCELLED})
        self.assertEqual(self.registry.resolve("ozon", "delivering"), STATUS_CANCELLED)
        self.assertEqual(self.registry.resolve("ozon", "cancelled"), STATUS_PENDING)

    def test_rejects_non_canonical_target(self):
        with self.assertRaises(ValueError):
            self.registry.register("ebay", {"FULFILLED": "done"})

    def test_mappings_returns_copy(self):
        snapshot = self.registry.mappings("ozon")
        snapshot["delivering"] = STATUS_CANCELLED
        self.assertEqual(self.registry.resolve("ozon", "delivering"), STATUS_SHIPPED)

    def test_caller_mapping_is_copied_on_register(self):
        source = {"x": STATUS_SHIPPED}
        self.registry.register("ebay", source)
        source["x"] = STATUS_CANCELLED
        self.assertEqual(self.registry.resolve("ebay", "x"), STATUS_SHIPPED)
        self.assertEqual(self.registry.platforms(), ["ebay", "ozon"])


class AdapterRegistryTest(unittest.TestCase):

    def setUp(self):
        self.statuses = StatusMappingRegistry()
        self.registry = AdapterRegistry(self.statuses)

    def test_register_and_lookup(self):
        adapter = FakeAdapter()
        self.registry.register(adapter)
        self.assertIs(self.registry.lookup("fake"), adapter)
        self.assertIsNone(self.registry.lookup("missing"))

    def test_require_unknown_platform(self):
        with self.assertRaises(PlatformNotFoundError) as ctx:
            self.registry.require("missing")
        self.assertEqual(ctx.exception.code, 404)
        self.assertEqual(ctx.exception.platform, "missing")

    def test_register_also_registers_status_mapping(self):
        self.registry.register(FakeAdapter())
        self.assertEqual(self.statuses.resolve("fake", "delivered"), "delivered")

    def test_platforms_sorted_with_credential_fields(self):
        self.registry.register(FakeTargetedAdapter())
        self.registry.register(FakeAdapter())
        platforms = self.registry.platforms()
        self.assertEqual([p["platform"] for p in platforms], ["fake", "fake_targeted"])
        self.assertEqual(platforms[0]["credential_fields"][0]["key"], "token")
        self.assertEqual(platforms[0]["credential_fields"][1]["default"], "EU")

    def test_adapter_without_platform_id_rejected(self):
        adapter = FakeAdapter()
        adapter.platform_id = ""
        with self.assertRaises(ValueError):
            self.registry.register(adapter)
