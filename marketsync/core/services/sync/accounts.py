# File: marketsync/core/services/sync/accounts.py
"""
# ==============================================================================
# 模块名称: 店铺账户服务 (Account Service)
# ==============================================================================
#
# [Purpose / 用途]
# - 绑定店铺: 按适配器的凭证字段校验后加密入库
# - 测试连接: 成功则恢复为启用，认证失败标记为过期
# - 凭证脱敏展示
# - 账户列表 (分页) / 修改 / 删除 (已同步订单保留)
#
# ==============================================================================
"""

from typing import Dict, Mapping, Optional

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import AccountRepository, PlatformAccount
from marketsync.core.repository.schema import ACCOUNT_ACTIVE, ACCOUNT_DISABLED, ACCOUNT_EXPIRED
from marketsync.core.services.platform.adapter import PlatformAdapter
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.services.sync.base import AccountSyncService, Page, clamp_page
from marketsync.core.sys.exceptions import AccountNotFoundError, AppValidationError, InvalidCredentialsError

ACCOUNT_STATUSES = (ACCOUNT_DISABLED, ACCOUNT_ACTIVE, ACCOUNT_EXPIRED)


class AccountService(AccountSyncService):

    def __init__(self, vault: CredentialVault, adapters: AdapterRegistry, accounts: AccountRepository):
        super().__init__(vault, adapters)
        self.accounts = accounts

    def get_account(self, account_id: int) -> PlatformAccount:
        account = self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def create_account(self, user_id: int, platform: str, shop_name: str,
                       credentials: Mapping[str, str]) -> int:
        adapter = self.adapters.require(platform)
        document = self._credential_document(adapter, credentials)
        if not shop_name:
            raise AppValidationError("Shop name is required")

        account_id = self.accounts.create(
            user_id=user_id,
            platform=platform,
            shop_name=shop_name,
            credentials=self.vault.encrypt_document(document),
        )
        self.log(f"🏪 Account {account_id} bound ({platform} / {shop_name})")
        return account_id

    @staticmethod
    def _credential_document(adapter: PlatformAdapter, credentials: Mapping[str, str]) -> Dict[str, str]:
        """按适配器声明的字段取值，缺少必填字段抛 422"""
        document: Dict[str, str] = {}
        missing = []
        for field in adapter.credential_fields():
            value = str(credentials.get(field.key) or "").strip()
            if not value and field.default:
                value = field.default
            if not value:
                if field.required:
                    missing.append(field.key)
                continue
            document[field.key] = value
        if missing:
            raise AppValidationError("Missing credential fields", details={"missing": missing})
        return document

    def list_accounts(self, user_id: int, page: Optional[int] = None, page_size: Optional[int] = None) -> Page:
        page, page_size = clamp_page(page, page_size, default_size=20)
        df, total = self.accounts.list_df(user_id, page=page, page_size=page_size)
        return Page(items=self.accounts.to_records(df), total=total, page=page, page_size=page_size)

    def update_account(self, account_id: int, shop_name: Optional[str] = None, status: Optional[int] = None,
                       credentials: Optional[Mapping[str, str]] = None) -> PlatformAccount:
        """
        修改店铺名 / 状态 / 凭证，未提供的字段保持不变。
        凭证整体替换，按新值重新校验必填字段。
        """
        account = self.get_account(account_id)
        patch: Dict[str, object] = {}
        if shop_name:
            patch["shop_name"] = shop_name
        if status is not None:
            if status not in ACCOUNT_STATUSES:
                raise AppValidationError("Unknown account status", details={"status": status})
            patch["status"] = status
        if credentials:
            document = self._credential_document(self.resolve_adapter(account), credentials)
            patch["credentials"] = self.vault.encrypt_document(document)

        if patch:
            self.accounts.update_fields(account.id, **patch)
            self.log(f"✏️ Account {account.id} updated: {sorted(patch)}")
        return self.get_account(account.id)

    def delete_account(self, account_id: int) -> None:
        account = self.get_account(account_id)
        self.accounts.delete(account.id)
        self.log(f"🗑️ Account {account.id} ({account.platform} / {account.shop_name}) deleted", level="warning")

    def test_account(self, account_id: int) -> bool:
        account = self.get_account(account_id)
        adapter = self.resolve_adapter(account)
        credentials = self.decrypt_credentials(account)
        try:
            adapter.test_connection(credentials, account_id=account.id)
        except InvalidCredentialsError:
            self.accounts.set_status(account.id, ACCOUNT_EXPIRED)
            self.log(f"🔐 Account {account.id} credentials rejected, marked expired", level="warning")
            raise

        if account.status == ACCOUNT_EXPIRED:
            self.accounts.set_status(account.id, ACCOUNT_ACTIVE)
        self.log(f"✅ Account {account.id} connection OK")
        return True

    def masked_credentials(self, account_id: int) -> Dict[str, str]:
        account = self.get_account(account_id)
        document = self.decrypt_credentials(account)
        return {key: self.vault.mask_value(str(value)) for key, value in document.items()}
