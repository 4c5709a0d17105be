# File: marketsync/core/services/platform/ebay/client.py
"""
# ==============================================================================
# 模块名称: eBay API 通用客户端 (API Client)
# ==============================================================================
#
# [Purpose / 用途]
# 在平台 HTTP 客户端基础上:
# - Bearer Token 认证 (refresh_token 换取)
# - 401 时刷新 access token 并重试一次
# - offset / limit / total 分页
#
# ==============================================================================
"""

from typing import Any, Dict, List, Optional

from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.platform.adapter import Credentials
from marketsync.core.services.platform.client import PlatformHTTPClient
from marketsync.core.services.platform.ebay.config import EbayConfig
from marketsync.core.services.platform.ebay.oauth import EbayOAuthManager
from marketsync.core.sys.exceptions import InvalidCredentialsError

PLATFORM_EBAY = "ebay"


class EbayClient(PlatformHTTPClient):
    platform = PLATFORM_EBAY

    def __init__(self, config: Optional[EbayConfig] = None,
                 request_log: Optional[RequestLogRepository] = None,
                 oauth: Optional[EbayOAuthManager] = None, **kwargs):
        self.config = config or EbayConfig.get_config()
        kwargs.setdefault("base_url", self.config.api_base_url)
        super().__init__(request_log=request_log, **kwargs)
        self.oauth = oauth or EbayOAuthManager(self.config, session=self.session, timeout=self.timeout)
        self.session.headers.update({"Accept-Language": "en-US"})

    def auth_headers(self, credentials: Credentials) -> Dict[str, str]:
        token = self.oauth.get_access_token(
            str(credentials.get("refresh_token") or ""),
            app_id=str(credentials.get("app_id") or ""),
            cert_id=str(credentials.get("cert_id") or ""),
        )
        headers = {"Authorization": f"Bearer {token}"}
        marketplace = credentials.get("marketplace_id")
        if marketplace:
            headers["X-EBAY-C-MARKETPLACE-ID"] = str(marketplace)
        return headers

    def masked_headers(self, credentials: Credentials) -> Dict[str, str]:
        return {"Authorization": "Bearer ***", "X-EBAY-C-MARKETPLACE-ID": str(credentials.get("marketplace_id", ""))}

    def request(self, method: str, endpoint: str, credentials: Credentials, **kwargs) -> Dict[str, Any]:
        """401: 丢弃缓存的 access token，重新换取后重试一次；仍失败则抛出"""
        refresh_token = str(credentials.get("refresh_token") or "")
        try:
            return super().request(method, endpoint, credentials, **kwargs)
        except InvalidCredentialsError as e:
            self.oauth.invalidate(refresh_token)
            if (e.details or {}).get("status_code") != 401:
                raise
        self.log("⚠️ Access token rejected, refreshing...", level="warning")
        try:
            return super().request(method, endpoint, credentials, **kwargs)
        except InvalidCredentialsError:
            self.oauth.invalidate(refresh_token)
            raise

    def get_paginated(
        self,
        endpoint: str,
        credentials: Credentials,
        items_key: str,
        *,
        request_type: str,
        params: Optional[Dict] = None,
        limit: int = 200,
        account_id: Optional[int] = None,
        base_url: Optional[str] = None,
    ) -> List[Dict]:
        """
        获取分页数据 (自动处理分页)

        eBay 响应结构: {"<items_key>": [...], "total": N}
        """
        all_items: List[Dict] = []
        offset = 0
        base_params = dict(params or {})

        while True:
            data = self.get(
                endpoint,
                credentials,
                params={**base_params, "limit": limit, "offset": offset},
                request_type=request_type,
                account_id=account_id,
                base_url=base_url,
            )
            items = data.get(items_key) or []
            if not items:
                break
            all_items.extend(items)

            total = int(data.get("total") or 0)
            if offset + len(items) >= total:
                break
            offset += limit
            self.log(f"📄 Fetched {len(all_items)}/{total} items...")

        self.log(f"✅ Pagination complete: {len(all_items)} {items_key} fetched")
        return all_items
