# File: marketsync/core/services/platform/status.py
"""
# ==============================================================================
# 模块名称: 订单状态映射 (Status Mapping Registry)
# ==============================================================================
#
# [Purpose / 用途]
# 平台原始状态 -> 系统标准状态。
# 标准状态: pending -> ready_to_ship -> shipped -> delivered，另有终态 cancelled。
# 未登记的平台或状态一律视为 pending。
#
# [Concurrency / 并发]
# 写入时整体替换 (copy-on-write)，读取返回副本，由锁保护。
#
# ==============================================================================
"""

import threading
from typing import Dict, Mapping

STATUS_PENDING = "pending"
STATUS_READY_TO_SHIP = "ready_to_ship"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"

CANONICAL_STATUSES = (
    STATUS_PENDING,
    STATUS_READY_TO_SHIP,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
)


class StatusMappingRegistry:

    def __init__(self):
        self._lock = threading.RLock()
        self._mappings: Dict[str, Dict[str, str]] = {}

    def register(self, platform: str, mapping: Mapping[str, str]) -> None:
        """登记 / 替换某平台的映射表 (后注册覆盖先注册)"""
        unknown = set(mapping.values()) - set(CANONICAL_STATUSES)
        if unknown:
            raise ValueError(f"Unknown canonical status for {platform}: {sorted(unknown)}")
        snapshot = dict(mapping)
        with self._lock:
            self._mappings = {**self._mappings, platform: snapshot}

    def resolve(self, platform: str, remote_status: str) -> str:
        with self._lock:
            table = self._mappings.get(platform)
        if not table:
            return STATUS_PENDING
        return table.get(remote_status, STATUS_PENDING)

    def mappings(self, platform: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._mappings.get(platform, {}))

    def platforms(self):
        with self._lock:
            return sorted(self._mappings)
