# File: marketsync/apps/marketplace/api.py
"""
Marketplace Sync REST API

店铺账户管理 / 订单查询 / 手动同步 (订单、单订单、佣金、现金流) / 请求日志，供前端 AJAX 调用。
所有响应使用 StandardResponse 信封；AppException 按其 code 返回对应 HTTP 状态。
他人的账户 / 订单 / 现金流一律按不存在 (404) 处理。
"""
import json
from datetime import datetime
from functools import wraps
from typing import Optional

from django.contrib.auth.decorators import login_required
from django.views.decorators.http import require_http_methods

from marketsync.core.services.platform.status import CANONICAL_STATUSES
from marketsync.core.services.sync.engine import get_sync_engine
from marketsync.core.sys.context import clear_context, new_trace
from marketsync.core.sys.exceptions import (
    AccountNotFoundError,
    AppException,
    AppValidationError,
    OrderNotFoundError,
    PermissionDeniedError,
    StatementNotFoundError,
)
from marketsync.core.sys.logger import get_error_logger
from marketsync.core.sys.response import StandardResponse
from marketsync.core.sys.utils import parse_datetime

error_logger = get_error_logger()


def api_endpoint(func):
    """每个请求一个 trace_id；业务异常转为标准错误响应"""
    @wraps(func)
    def wrapper(request, *args, **kwargs):
        new_trace(func.__name__, username=request.user.get_username() or None)
        try:
            return func(request, *args, **kwargs)
        except AppException as e:
            error_logger.warning(f"{func.__name__} failed: {e.message}")
            return StandardResponse.from_exception(e)
        finally:
            clear_context()
    return wrapper


def _payload(request) -> dict:
    if not request.body:
        return request.POST.dict()
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise AppValidationError("Request body is not valid JSON")
    if not isinstance(data, dict):
        raise AppValidationError("Request body must be a JSON object")
    return data


def _parse_time(data: dict, key: str) -> Optional[datetime]:
    raw = data.get(key)
    if not raw:
        return None
    parsed = parse_datetime(raw)
    if parsed is None:
        raise AppValidationError(f"Invalid {key}, expected ISO-8601 timestamp", details={key: raw})
    return parsed


def _owned_account(request, account_id: int):
    """账户必须属于当前用户 (超级管理员除外)"""
    account = get_sync_engine().accounts.get_account(account_id)
    if not request.user.is_superuser and account.user_id != request.user.id:
        raise AccountNotFoundError(account_id)
    return account


def _int_param(params, key: str, default: Optional[int] = None) -> Optional[int]:
    raw = params.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise AppValidationError(f"Invalid {key}, expected an integer", details={key: raw})


def _owned_order(request, order_id: int) -> dict:
    order = get_sync_engine().order_repo.get(order_id)
    if not order or (not request.user.is_superuser and order["user_id"] != request.user.id):
        raise OrderNotFoundError(order_id)
    return order


def _account_view(account) -> dict:
    return {
        "id": account.id,
        "platform": account.platform,
        "shop_name": account.shop_name,
        "status": account.status,
        "last_sync_at": account.last_sync_at.isoformat() if account.last_sync_at else None,
        "credentials": get_sync_engine().accounts.masked_credentials(account.id),
    }


@login_required
@require_http_methods(["GET"])
@api_endpoint
def list_platforms(request):
    """已注册平台及其凭证表单字段"""
    return StandardResponse.success(get_sync_engine().platforms())


# === 账户 ===

@login_required
@require_http_methods(["GET", "POST"])
@api_endpoint
def accounts(request):
    """GET: 当前用户的账户列表 (分页)；POST: 绑定新店铺"""
    service = get_sync_engine().accounts
    if request.method == "GET":
        page = service.list_accounts(
            request.user.id,
            page=_int_param(request.GET, "page"),
            page_size=_int_param(request.GET, "page_size"),
        )
        return StandardResponse.success(page.items, meta=page.meta())

    data = _payload(request)
    credentials = data.get("credentials") or {}
    if not isinstance(credentials, dict):
        raise AppValidationError("credentials must be an object")
    account_id = service.create_account(
        user_id=request.user.id,
        platform=str(data.get("platform") or ""),
        shop_name=str(data.get("shop_name") or "").strip(),
        credentials=credentials,
    )
    return StandardResponse.success({"account_id": account_id}, msg="Account created")


@login_required
@require_http_methods(["GET", "PUT", "DELETE"])
@api_endpoint
def account_detail(request, account_id: int):
    account = _owned_account(request, account_id)
    service = get_sync_engine().accounts

    if request.method == "DELETE":
        service.delete_account(account.id)
        return StandardResponse.success({"account_id": account.id}, msg="Account deleted")

    if request.method == "PUT":
        data = _payload(request)
        credentials = data.get("credentials") or None
        if credentials is not None and not isinstance(credentials, dict):
            raise AppValidationError("credentials must be an object")
        account = service.update_account(
            account.id,
            shop_name=str(data.get("shop_name") or "").strip() or None,
            status=_int_param(data, "status"),
            credentials=credentials,
        )
        return StandardResponse.success(_account_view(account), msg="Account updated")

    return StandardResponse.success(_account_view(account))


@login_required
@require_http_methods(["POST"])
@api_endpoint
def test_account(request, account_id: int):
    _owned_account(request, account_id)
    get_sync_engine().test_account(account_id)
    return StandardResponse.success({"account_id": account_id, "connected": True}, msg="Connection OK")


@login_required
@require_http_methods(["GET"])
@api_endpoint
def request_logs(request, account_id: int):
    """该账户最近的平台 API 调用记录"""
    _owned_account(request, account_id)
    logs = get_sync_engine().queries.request_logs(account_id, limit=_int_param(request.GET, "limit", 50))
    return StandardResponse.success(logs)


# === 手动同步 ===

@login_required
@require_http_methods(["POST"])
@api_endpoint
def sync_orders(request, account_id: int):
    """手动同步订单 (默认最近 7 天)"""
    _owned_account(request, account_id)
    data = _payload(request)
    result = get_sync_engine().sync_account_orders(
        account_id,
        since=_parse_time(data, "since"),
        until=_parse_time(data, "until"),
    )
    return StandardResponse.success(result.as_dict(), msg="Orders synchronized")


@login_required
@require_http_methods(["POST"])
@api_endpoint
def sync_commissions(request, account_id: int):
    """手动同步佣金 (默认最近 30 天，可按标准状态过滤)"""
    _owned_account(request, account_id)
    data = _payload(request)
    status = data.get("status") or None
    if status and status not in CANONICAL_STATUSES:
        raise AppValidationError("Unknown order status", details={"status": status})
    result = get_sync_engine().sync_account_commissions(
        account_id,
        since=_parse_time(data, "since"),
        until=_parse_time(data, "until"),
        status=status,
        full_window=str(data.get("full_window", "")).lower() in ("1", "true", "yes"),
    )
    return StandardResponse.success(result.as_dict(), msg="Commissions synchronized")


@login_required
@require_http_methods(["POST"])
@api_endpoint
def sync_cash_flows(request, account_id: int):
    """手动同步现金流报表 (默认最近 30 天)"""
    _owned_account(request, account_id)
    data = _payload(request)
    result = get_sync_engine().sync_account_cash_flows(
        account_id,
        since=_parse_time(data, "since"),
        until=_parse_time(data, "until"),
    )
    return StandardResponse.success(result.as_dict(), msg="Cash flow statements synchronized")


@login_required
@require_http_methods(["POST"])
@api_endpoint
def sync_single_order(request, order_id: int):
    """从平台刷新单个订单的状态"""
    _owned_order(request, order_id)
    order = get_sync_engine().sync_single_order(order_id)
    order.pop("raw_data", None)
    return StandardResponse.success(order, msg="Order synchronized")


@login_required
@require_http_methods(["POST"])
@api_endpoint
def sync_order_commission(request, order_id: int):
    _owned_order(request, order_id)
    result = get_sync_engine().sync_order_commission(order_id)
    return StandardResponse.success(result.as_dict(), msg="Order commission synchronized")


@login_required
@require_http_methods(["POST"])
@api_endpoint
def trigger_sync(request):
    """立即执行一轮全账户同步 (仅管理员)"""
    if not request.user.is_staff:
        raise PermissionDeniedError("Only staff can trigger a full sync pass")
    result = get_sync_engine().trigger_pass()
    return StandardResponse.success(result.as_dict(), msg="Sync pass finished")


# === 订单 / 现金流查询 ===

@login_required
@require_http_methods(["GET"])
@api_endpoint
def list_orders(request):
    """
    订单列表
    过滤: platform / account_id / status (逗号分隔) / keyword / since / until / deadline
    分页: page / page_size (默认 10，最大 100)
    """
    params = request.GET
    queries = get_sync_engine().queries
    filters = queries.build_filters(
        platform=params.get("platform") or None,
        account_id=_int_param(params, "account_id"),
        status=params.get("status") or None,
        keyword=params.get("keyword") or None,
        since=_parse_time(params, "since"),
        until=_parse_time(params, "until"),
        deadline=params.get("deadline") or None,
    )
    page = queries.list_orders(
        request.user.id,
        filters,
        page=_int_param(params, "page"),
        page_size=_int_param(params, "page_size"),
    )
    return StandardResponse.success(page.items, meta=page.meta())


@login_required
@require_http_methods(["GET"])
@api_endpoint
def order_detail(request, order_id: int):
    _owned_order(request, order_id)
    return StandardResponse.success(get_sync_engine().queries.get_order(order_id))


@login_required
@require_http_methods(["GET"])
@api_endpoint
def list_cash_flows(request):
    """现金流报表列表 (按账期结束时间倒序)，可按 account_id 过滤"""
    account_id = _int_param(request.GET, "account_id")
    if account_id is not None:
        _owned_account(request, account_id)
    page = get_sync_engine().cash_flows.list_statements(
        request.user.id,
        account_id=account_id,
        page=_int_param(request.GET, "page"),
        page_size=_int_param(request.GET, "page_size"),
    )
    return StandardResponse.success(page.items, meta=page.meta())


@login_required
@require_http_methods(["GET"])
@api_endpoint
def cash_flow_detail(request, statement_id: int):
    statement = get_sync_engine().cash_flows.get_statement(statement_id)
    if not request.user.is_superuser and statement["user_id"] != request.user.id:
        raise StatementNotFoundError(statement_id)
    return StandardResponse.success(statement)
