# File: marketsync/core/repository/account_repo.py
"""
# ==============================================================================
# 模块名称: 平台账户仓库 (Platform Account Repository)
# ==============================================================================
#
# [Purpose / 用途]
# platform_accounts 表的读写。凭证字段始终是密文，解密由 CredentialVault 负责。
#
# ==============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy import delete, func, insert, select, update

from marketsync.core.repository.base import BaseRepository
from marketsync.core.repository.schema import ACCOUNT_ACTIVE, platform_accounts
from marketsync.core.sys.utils import now_utc


@dataclass
class PlatformAccount:
    id: int
    user_id: int
    platform: str
    shop_name: str
    credentials: str
    status: int = ACCOUNT_ACTIVE
    last_sync_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACCOUNT_ACTIVE

    @classmethod
    def from_row(cls, row: dict) -> "PlatformAccount":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            platform=row["platform"],
            shop_name=row["shop_name"],
            credentials=row["credentials"],
            status=row["status"],
            last_sync_at=row.get("last_sync_at"),
        )


class AccountRepository(BaseRepository):

    def get(self, account_id: int) -> Optional[PlatformAccount]:
        row = self.fetch_one(select(platform_accounts).where(platform_accounts.c.id == account_id))
        return PlatformAccount.from_row(row) if row else None

    def list_active(self) -> List[PlatformAccount]:
        stmt = (
            select(platform_accounts)
            .where(platform_accounts.c.status == ACCOUNT_ACTIVE)
            .order_by(platform_accounts.c.id)
        )
        return [PlatformAccount.from_row(r) for r in self.fetch_all(stmt)]

    def create(self, user_id: int, platform: str, shop_name: str, credentials: str,
               status: int = ACCOUNT_ACTIVE) -> int:
        now = now_utc()
        stmt = insert(platform_accounts).values(
            user_id=user_id,
            platform=platform,
            shop_name=shop_name,
            credentials=credentials,
            status=status,
            created_at=now,
            updated_at=now,
        )
        with self.atomic() as conn:
            result = conn.execute(stmt)
            return int(result.inserted_primary_key[0])

    def update_credentials(self, account_id: int, credentials: str) -> int:
        stmt = (
            update(platform_accounts)
            .where(platform_accounts.c.id == account_id)
            .values(credentials=credentials, updated_at=now_utc())
        )
        return self.execute_stmt(stmt)

    def set_status(self, account_id: int, status: int) -> int:
        stmt = (
            update(platform_accounts)
            .where(platform_accounts.c.id == account_id)
            .values(status=status, updated_at=now_utc())
        )
        return self.execute_stmt(stmt)

    def touch_last_sync(self, account_id: int, at: Optional[datetime] = None) -> int:
        stmt = (
            update(platform_accounts)
            .where(platform_accounts.c.id == account_id)
            .values(last_sync_at=at or now_utc())
        )
        return self.execute_stmt(stmt)

    def update_fields(self, account_id: int, **values) -> int:
        """只允许 shop_name / status / credentials"""
        patch = {k: v for k, v in values.items() if k in ("shop_name", "status", "credentials")}
        if not patch:
            return 0
        patch["updated_at"] = now_utc()
        stmt = update(platform_accounts).where(platform_accounts.c.id == account_id).values(**patch)
        return self.execute_stmt(stmt)

    def delete(self, account_id: int) -> int:
        """只删账户本身，已同步的订单保留"""
        return self.execute_stmt(delete(platform_accounts).where(platform_accounts.c.id == account_id))

    def list_df(self, user_id: int, page: int = 1, page_size: int = 20) -> Tuple[pd.DataFrame, int]:
        """账户列表 (id 倒序分页，不含凭证密文)，返回 (当前页, 总数)"""
        counted = self.fetch_one(
            select(func.count().label("total"))
            .select_from(platform_accounts)
            .where(platform_accounts.c.user_id == user_id)
        )
        cols = [c for c in platform_accounts.c if c.name != "credentials"]
        stmt = (
            select(*cols)
            .where(platform_accounts.c.user_id == user_id)
            .order_by(platform_accounts.c.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return self.query_df(stmt), int(counted["total"]) if counted else 0
