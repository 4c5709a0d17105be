# File: marketsync/core/services/platform/client.py
"""
# ==============================================================================
# 模块名称: 平台 HTTP 客户端基类 (Platform HTTP Client)
# ==============================================================================
#
# [Purpose / 用途]
# 封装各平台 REST API 的通用请求逻辑：
# - 认证头由子类根据账户凭证生成
# - 统一错误处理 (401/403 -> InvalidCredentialsError, 其他非 2xx -> PlatformAPIError)
# - 429 频率限制按 Retry-After 等待重试，5xx 按指数退避重试
# - 每次请求写入 orders_request_log (认证头脱敏)
#
# ==============================================================================
"""

import json
import time
from typing import Any, Callable, Dict, Optional

import requests

from marketsync.common.settings import settings
from marketsync.core.repository.request_log_repo import RequestLogRepository
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import Credentials
from marketsync.core.sys.exceptions import InvalidCredentialsError, PlatformAPIError


class PlatformHTTPClient(BaseService):
    """
    平台 API 通用客户端。子类实现 auth_headers / masked_headers。
    """
    platform: str = ""

    def __init__(self, base_url: str, timeout: Optional[int] = None,
                 request_log: Optional[RequestLogRepository] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.PLATFORM_HTTP_TIMEOUT
        self.request_log = request_log
        self.session = session or requests.Session()
        self.sleep = sleep
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def auth_headers(self, credentials: Credentials) -> Dict[str, str]:
        raise NotImplementedError

    def masked_headers(self, credentials: Credentials) -> Dict[str, str]:
        raise NotImplementedError

    def request(
        self,
        method: str,
        endpoint: str,
        credentials: Credentials,
        *,
        request_type: str,
        params: Optional[Dict] = None,
        data: Optional[Dict] = None,
        account_id: Optional[int] = None,
        retry_count: int = 2,
        base_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        发送 API 请求，返回解析后的 JSON。

        Raises:
            InvalidCredentialsError: 平台返回 401/403
            PlatformAPIError: 其他非 2xx
            requests.RequestException: 网络错误 (重试耗尽后原样抛出)
        """
        url = f"{(base_url or self.base_url).rstrip('/')}/{endpoint.lstrip('/')}"
        headers = self.auth_headers(credentials)

        for attempt in range(retry_count + 1):
            started = time.monotonic()
            try:
                response = self.session.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=data,
                    headers=headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                self._record(account_id, request_type, url, method, credentials, data,
                             duration_ms=self._elapsed_ms(started), error_message=str(e))
                if attempt < retry_count:
                    self.log(f"⚠️ Request failed (attempt {attempt + 1}): {e}", level="warning")
                    continue
                raise

            self._record(account_id, request_type, url, method, credentials, data,
                         response_status=response.status_code, response_body=response.text,
                         duration_ms=self._elapsed_ms(started))

            if 200 <= response.status_code < 300:
                return response.json() if response.text else {}

            if response.status_code in (401, 403):
                raise InvalidCredentialsError(
                    f"{self.platform} rejected credentials (HTTP {response.status_code})",
                    details={"status_code": response.status_code, "body": response.text[:500]},
                )

            # 429 频率限制 - 等待后重试
            if response.status_code == 429 and attempt < retry_count:
                wait_time = int(response.headers.get("Retry-After", 5))
                self.log(f"⚠️ Rate limited, waiting {wait_time}s...", level="warning")
                self.sleep(wait_time)
                continue

            if response.status_code >= 500 and attempt < retry_count:
                backoff = 2 ** attempt
                self.log(f"⚠️ HTTP {response.status_code} from {endpoint}, retrying in {backoff}s", level="warning")
                self.sleep(backoff)
                continue

            raise PlatformAPIError(
                f"{self.platform} API error: HTTP {response.status_code} {endpoint}",
                status_code=response.status_code,
                body=response.text[:2000],
            )

        raise PlatformAPIError(f"{self.platform} API error: retries exhausted {endpoint}")

    def get(self, endpoint: str, credentials: Credentials, **kwargs) -> Dict[str, Any]:
        return self.request("GET", endpoint, credentials, **kwargs)

    def post(self, endpoint: str, credentials: Credentials, data: Optional[Dict] = None,
             **kwargs) -> Dict[str, Any]:
        return self.request("POST", endpoint, credentials, data=data, **kwargs)

    # --- 请求日志 ---

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _record(self, account_id, request_type, url, method, credentials, body, **result) -> None:
        if self.request_log is None:
            return
        self.request_log.record(
            account_id=account_id,
            platform=self.platform,
            request_type=request_type,
            url=url,
            method=method,
            headers=json.dumps(self.masked_headers(credentials)),
            body=body,
            **result,
        )
