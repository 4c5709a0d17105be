# File: marketsync/core/services/sync/base.py
"""
同步服务公共基类: 凭证解密 + 适配器解析；列表接口共用的分页结构
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from marketsync.core.components.security import CredentialVault
from marketsync.core.repository.account_repo import PlatformAccount
from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import PlatformAdapter
from marketsync.core.services.platform.registry import AdapterRegistry
from marketsync.core.sys.exceptions import InvalidCiphertextError, InvalidCredentialsError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class AccountSyncService(BaseService):

    def __init__(self, vault: CredentialVault, adapters: AdapterRegistry):
        super().__init__()
        self.vault = vault
        self.adapters = adapters

    def decrypt_credentials(self, account: PlatformAccount) -> Dict[str, str]:
        """
        解密账户凭证。
        密文损坏 / 认证失败 / 非 JSON 统一视为凭证无效。
        """
        try:
            return self.vault.decrypt_document(account.credentials)
        except InvalidCiphertextError as e:
            self.log(f"🔐 Account {account.id} credentials unreadable: {e.message}", level="error")
            raise InvalidCredentialsError(
                f"Credentials of account {account.id} cannot be decrypted",
                details={"account_id": account.id},
            )

    def resolve_adapter(self, account: PlatformAccount) -> PlatformAdapter:
        return self.adapters.require(account.platform)


@dataclass
class Page:
    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int

    def meta(self) -> Dict[str, int]:
        return {"total": self.total, "page": self.page, "page_size": self.page_size}


def clamp_page(page: Optional[int], page_size: Optional[int], default_size: int = DEFAULT_PAGE_SIZE):
    """page 从 1 开始；page_size 超出 [1, MAX_PAGE_SIZE] 时回到默认值"""
    page = page if page and page > 0 else 1
    if not page_size or page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = default_size
    return page, page_size
