# File: marketsync/core/services/platform/ebay/oauth.py
"""
# ==============================================================================
# 模块名称: eBay OAuth 2.0 Token 管理 (OAuth Manager)
# ==============================================================================
#
# [Purpose / 用途]
# 每个店铺账户保存长期 refresh_token；调用 API 前换取短期 access_token，
# 并按 refresh_token 缓存到过期前 5 分钟。
#
# [OAuth Flow / 认证流程]
# POST identity/v1/oauth2/token
#   Authorization: Basic Base64(app_id:cert_id)
#   grant_type=refresh_token&refresh_token=...&scope=...
#
# ==============================================================================
"""

import base64
import hashlib
import threading
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import requests

from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.ebay.config import EbayConfig
from marketsync.core.sys.exceptions import InvalidCredentialsError, PlatformAPIError
from marketsync.core.sys.utils import now_utc


class EbayOAuthManager(BaseService):

    def __init__(self, config: EbayConfig, session: Optional[requests.Session] = None, timeout: int = 30):
        super().__init__()
        self.config = config
        self.session = session or requests.Session()
        self.timeout = timeout
        self._lock = threading.Lock()
        # sha256(refresh_token) -> (access_token, expiry)
        self._cache: Dict[str, Tuple[str, datetime]] = {}

    def _get_basic_auth_header(self, app_id: str, cert_id: str) -> str:
        encoded = base64.b64encode(f"{app_id}:{cert_id}".encode()).decode()
        return f"Basic {encoded}"

    @staticmethod
    def _cache_key(refresh_token: str) -> str:
        return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()

    def get_access_token(self, refresh_token: str, app_id: str = "", cert_id: str = "") -> str:
        """返回有效 access_token (必要时刷新)"""
        if not refresh_token:
            raise InvalidCredentialsError("eBay credentials incomplete: refresh_token is required")

        key = self._cache_key(refresh_token)
        with self._lock:
            cached = self._cache.get(key)
        if cached and now_utc() < cached[1] - timedelta(minutes=5):
            return cached[0]

        token, expiry = self.refresh_access_token(refresh_token, app_id, cert_id)
        with self._lock:
            self._cache[key] = (token, expiry)
        return token

    def refresh_access_token(self, refresh_token: str, app_id: str = "",
                             cert_id: str = "") -> Tuple[str, datetime]:
        app_id = app_id or self.config.app_id
        cert_id = cert_id or self.config.cert_id
        if not app_id or not cert_id:
            raise InvalidCredentialsError("eBay application keys (app_id / cert_id) are not configured")

        self.log("🔄 Refreshing eBay access token...")
        response = self.session.post(
            self.config.token_url,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": self._get_basic_auth_header(app_id, cert_id),
            },
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": self.config.scopes_string,
            },
            timeout=self.timeout,
        )

        if response.status_code == 200:
            result = response.json()
            expires_in = int(result.get("expires_in", 7200))
            self.log(f"✅ Token refreshed! New expiry in {expires_in // 3600} hours")
            return result["access_token"], now_utc() + timedelta(seconds=expires_in)

        if response.status_code in (400, 401, 403):
            error = response.json() if response.text else {}
            self.log(f"❌ Token refresh failed: {error}", level="error")
            raise InvalidCredentialsError(
                "eBay refresh token rejected",
                details={"error": error.get("error"), "error_description": error.get("error_description")},
            )

        raise PlatformAPIError(
            f"eBay token endpoint error: HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.text[:2000],
        )

    def invalidate(self, refresh_token: str) -> None:
        with self._lock:
            self._cache.pop(self._cache_key(refresh_token), None)
