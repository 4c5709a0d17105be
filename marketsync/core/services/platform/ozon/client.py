# File: marketsync/core/services/platform/ozon/client.py
"""
# ==============================================================================
# 模块名称: Ozon Seller API 客户端 (Ozon Client)
# ==============================================================================
#
# [Purpose / 用途]
# - 解析账户凭证 (client_id / api_key / settlement_currency)
# - Client-Id / Api-Key 认证头，日志中 Api-Key 脱敏
#
# ==============================================================================
"""

from dataclasses import dataclass
from typing import Dict, Optional

from marketsync.common.settings import settings
from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.platform.adapter import Credentials
from marketsync.core.services.platform.client import PlatformHTTPClient
from marketsync.core.sys.exceptions import InvalidCredentialsError

PLATFORM_OZON = "ozon"
DEFAULT_SETTLEMENT_CURRENCY = "RUB"


@dataclass
class OzonCredentials:
    client_id: str
    api_key: str
    settlement_currency: str = DEFAULT_SETTLEMENT_CURRENCY

    @classmethod
    def parse(cls, credentials: Credentials) -> "OzonCredentials":
        client_id = str(credentials.get("client_id") or "").strip()
        api_key = str(credentials.get("api_key") or "").strip()
        if not client_id or not api_key:
            raise InvalidCredentialsError("Ozon credentials incomplete: client_id and api_key are required")
        currency = str(credentials.get("settlement_currency") or "").strip() or DEFAULT_SETTLEMENT_CURRENCY
        return cls(client_id=client_id, api_key=api_key, settlement_currency=currency.upper())


class OzonClient(PlatformHTTPClient):
    platform = PLATFORM_OZON

    def __init__(self, request_log: Optional[RequestLogRepository] = None, **kwargs):
        kwargs.setdefault("base_url", settings.OZON_API_BASE_URL)
        super().__init__(request_log=request_log, **kwargs)

    def auth_headers(self, credentials: Credentials) -> Dict[str, str]:
        creds = OzonCredentials.parse(credentials)
        return {"Client-Id": creds.client_id, "Api-Key": creds.api_key}

    def masked_headers(self, credentials: Credentials) -> Dict[str, str]:
        return {"Client-Id": str(credentials.get("client_id", "")), "Api-Key": "***"}
