# File: marketsync/core/services/platform/registry.py
"""
平台适配器注册表

以 platform_id 为键登记适配器，同时把适配器的 STATUS_MAPPING 登记到状态映射表，
保证订单状态始终经由映射表解析。
"""

import threading
from typing import Dict, List, Optional

from marketsync.core.services.platform.adapter import PlatformAdapter
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.sys.exceptions import PlatformNotFoundError


class AdapterRegistry:

    def __init__(self, status_registry: StatusMappingRegistry):
        self.status_registry = status_registry
        self._lock = threading.RLock()
        self._adapters: Dict[str, PlatformAdapter] = {}

    def register(self, adapter: PlatformAdapter) -> None:
        if not adapter.platform_id:
            raise ValueError(f"{type(adapter).__name__} has no platform_id")
        with self._lock:
            self._adapters[adapter.platform_id] = adapter
        self.status_registry.register(adapter.platform_id, adapter.STATUS_MAPPING)

    def lookup(self, platform: str) -> Optional[PlatformAdapter]:
        with self._lock:
            return self._adapters.get(platform)

    def require(self, platform: str) -> PlatformAdapter:
        adapter = self.lookup(platform)
        if adapter is None:
            raise PlatformNotFoundError(platform)
        return adapter

    def platforms(self) -> List[dict]:
        """平台列表 + 凭证表单定义 (供前端渲染)"""
        with self._lock:
            adapters = [self._adapters[k] for k in sorted(self._adapters)]
        return [a.describe() for a in adapters]
