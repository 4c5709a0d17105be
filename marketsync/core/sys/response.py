# File: marketsync/core/sys/response.py
"""
文件说明: API 响应信封 (Response Envelope)

成功: {"status": "success", "code": 200, "message", "data", "meta"}
失败: {"status": "error", "code": <HTTP 状态>, "message", "errors", "meta"}
meta 固定带 timestamp (UTC) 与 trace_id。
Decimal / datetime 由 JsonResponse 默认的 DjangoJSONEncoder 序列化。
"""
from typing import Any, Dict, Optional

from django.http import JsonResponse

from marketsync.core.sys.context import get_trace_id
from marketsync.core.sys.exceptions import AppException
from marketsync.core.sys.utils import now_utc


def _envelope(status: str, code: int, message: str, body_key: str, body: Any,
              extra_meta: Optional[Dict] = None) -> JsonResponse:
    meta = {"timestamp": now_utc().isoformat(), "trace_id": get_trace_id()}
    if extra_meta:
        meta.update(extra_meta)
    return JsonResponse(
        {"status": status, "code": code, "message": message, body_key: body, "meta": meta},
        status=code,
    )


class StandardResponse:
    @staticmethod
    def success(data: Any = None, msg: str = "Success", meta: Optional[Dict] = None) -> JsonResponse:
        return _envelope("success", 200, msg, "data", data, meta)

    @staticmethod
    def error(msg: str = "Error", code: int = 400, errors: Any = None) -> JsonResponse:
        """code 同时作为 HTTP 状态码返回"""
        return _envelope("error", code, msg, "errors", errors)

    @staticmethod
    def from_exception(exc: AppException) -> JsonResponse:
        return StandardResponse.error(exc.message, code=exc.code, errors=exc.details)
