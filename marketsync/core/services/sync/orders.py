# File: marketsync/core/services/sync/orders.py
"""
# ==============================================================================
# 模块名称: 订单同步编排 (Order Sync Orchestrator)
# ==============================================================================
#
# [Purpose / 用途]
# 拉取某账户在时间窗口内的全部订单并幂等写入本地:
#   1. 解密凭证 (失败 -> InvalidCredentialsError)
#   2. 适配器拉取整个窗口 (内部分页)
#   3. 状态经 StatusMappingRegistry 解析为标准状态
#   4. 按平台订单号全局查找: 不存在则插入 (含商品行)，存在则只刷新
#      status / platform_status / total_amount / ship_time / ship_deadline
#   5. 单个订单失败只记日志并跳过
#   6. 无论单个订单成败，最后推进账户 last_sync_at
#
# [Single Order / 单订单刷新]
# sync_single_order 优先走订单详情接口 (OrderDetailSource)，失败或不支持时
# 回退为按下单时间前后各 1 天 (无下单时间则最近 7 天) 拉取列表并匹配订单号。
#
# [Invariants / 约束]
# - 从不写入佣金字段 (佣金由 CommissionReconciler 负责)
# - 同一订单号并发插入时，唯一约束冲突回退为更新
#
# ==============================================================================
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import AccountRepository, PlatformAccount
from marketsync.core.repository.order_repo import OrderRepository
from marketsync.core.services.platform.adapter import Credentials, OrderDetailSource, PlatformAdapter, RemoteOrder
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.platform.status import StatusMappingRegistry
from marketsync.core.services.sync.base import AccountSyncService
from marketsync.core.sys.exceptions import (
    AccountNotFoundError,
    InvalidCredentialsError,
    OrderNotFoundError,
    RemoteOrderNotFoundError,
)
from marketsync.core.sys.utils import now_utc

CREATED = "created"
UPDATED = "updated"


@dataclass
class SyncOrdersResult:
    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class OrderSyncService(AccountSyncService):

    def __init__(self, vault: CredentialVault, adapters: AdapterRegistry, statuses: StatusMappingRegistry,
                 accounts: AccountRepository, orders: OrderRepository):
        super().__init__(vault, adapters)
        self.statuses = statuses
        self.accounts = accounts
        self.orders = orders

    def sync_orders(self, account: PlatformAccount, since: datetime, until: datetime) -> SyncOrdersResult:
        self.log(f"🔄 [{account.platform}] Account {account.id} order sync {since} -> {until}")
        self.start_timer()

        adapter = self.resolve_adapter(account)
        credentials = self.decrypt_credentials(account)
        remote_orders = adapter.fetch_orders(credentials, since, until, account_id=account.id)

        result = SyncOrdersResult()
        for remote in remote_orders:
            result.total += 1
            try:
                outcome = self.upsert(account, remote)
            except Exception as e:
                result.failed += 1
                self.log(f"❌ Order {remote.platform_order_no} skipped: {e}", level="error")
                continue
            if outcome == CREATED:
                result.created += 1
            else:
                result.updated += 1

        self.accounts.touch_last_sync(account.id, now_utc())
        self.log(
            f"✅ Account {account.id} orders: total={result.total} created={result.created} "
            f"updated={result.updated} failed={result.failed}"
        )
        self.end_timer("Order Sync")
        return result

    def upsert(self, account: PlatformAccount, remote: RemoteOrder) -> str:
        if not remote.platform_order_no:
            raise ValueError("platform order number is empty")

        values = self._order_values(account, remote)
        existing = self.orders.find_by_platform_order_no(remote.platform_order_no)
        if existing:
            self.orders.update_sync_fields(existing["id"], values)
            return UPDATED

        try:
            self.orders.insert_order(values, self._item_values(remote))
            return CREATED
        except IntegrityError:
            # 并发插入同一订单号
            existing = self.orders.find_by_platform_order_no(remote.platform_order_no)
            if not existing:
                raise
            self.orders.update_sync_fields(existing["id"], values)
            return UPDATED

    # --- 单订单 ---

    def sync_single_order(self, order_id: int) -> Dict[str, Any]:
        """从平台刷新单个订单的状态 / 金额 / 发货时间，返回刷新后的订单 (含 items)"""
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        account = self.accounts.get(order["account_id"])
        if not account:
            raise AccountNotFoundError(order["account_id"])

        adapter = self.resolve_adapter(account)
        credentials = self.decrypt_credentials(account)
        number = order["platform_order_no"]

        remote = self._fetch_detail(adapter, credentials, account, number)
        if remote is None:
            remote = self._find_in_window(adapter, credentials, account, number, order.get("order_time"))
        if remote is None:
            raise RemoteOrderNotFoundError(number)

        values = self._order_values(account, remote)
        self.orders.update_sync_fields(order_id, values)
        self.log(f"🔁 Order {number} refreshed: {order['status']} -> {values['status']}")

        refreshed = self.orders.get(order_id)
        refreshed["items"] = self.orders.get_items(order_id)
        return refreshed

    def _fetch_detail(self, adapter: PlatformAdapter, credentials: Credentials, account: PlatformAccount,
                      number: str) -> Optional[RemoteOrder]:
        if not isinstance(adapter, OrderDetailSource):
            return None
        try:
            return adapter.fetch_order_detail(credentials, number, account_id=account.id)
        except InvalidCredentialsError:
            raise
        except Exception as e:
            self.log(f"⚠️ Order detail for {number} failed, falling back to list: {e}", level="warning")
            return None

    def _find_in_window(self, adapter: PlatformAdapter, credentials: Credentials, account: PlatformAccount,
                        number: str, order_time: Optional[datetime]) -> Optional[RemoteOrder]:
        if order_time is not None:
            since, until = order_time - timedelta(days=1), order_time + timedelta(days=1)
        else:
            until = now_utc()
            since = until - timedelta(days=7)
        for remote in adapter.fetch_orders(credentials, since, until, account_id=account.id):
            if remote.platform_order_no == number:
                return remote
        return None


    def _order_values(self, account: PlatformAccount, remote: RemoteOrder) -> Dict[str, Any]:
        return {
            "user_id": account.user_id,
            "account_id": account.id,
            "platform": account.platform,
            "platform_order_no": remote.platform_order_no,
            "status": self.statuses.resolve(account.platform, remote.platform_status),
            "platform_status": remote.platform_status,
            "total_amount": remote.total_amount,
            "currency": remote.currency,
            "recipient_name": remote.recipient_name,
            "recipient_phone": remote.recipient_phone,
            "country": remote.country,
            "province": remote.province,
            "city": remote.city,
            "zip_code": remote.zip_code,
            "address": remote.address,
            "order_time": remote.order_time,
            "ship_time": remote.ship_time,
            "ship_deadline": remote.ship_deadline,
            "raw_data": json.dumps(remote.raw, ensure_ascii=False, default=str) if remote.raw else None,
        }

    @staticmethod
    def _item_values(remote: RemoteOrder) -> List[Dict[str, Any]]:
        return [
            {
                "platform_sku": item.platform_sku,
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "price": item.price,
                "currency": item.currency,
            }
            for item in remote.items
        ]
