# File: marketsync/core/services/platform/ebay/config.py
"""
eBay 应用级配置

App ID / Cert ID 与环境 (sandbox / production) 来自 settings；
卖家的 refresh_token 属于账户凭证，加密存放在 platform_accounts 中。
"""

from dataclasses import dataclass
from enum import Enum

from marketsync.common.settings import settings

# 订单同步 + 佣金对账所需的最小授权范围
SYNC_SCOPES = (
    "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
    "https://api.ebay.com/oauth/api_scope/sell.finances",
)


class EbayEnvironment(Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


# 环境 -> (REST 主域名, Finances 专用 apiz 域名)
_HOSTS = {
    EbayEnvironment.SANDBOX: ("https://api.sandbox.ebay.com", "https://apiz.sandbox.ebay.com"),
    EbayEnvironment.PRODUCTION: ("https://api.ebay.com", "https://apiz.ebay.com"),
}


@dataclass(frozen=True)
class EbayConfig:
    app_id: str = ""
    cert_id: str = ""
    environment: EbayEnvironment = EbayEnvironment.PRODUCTION

    @property
    def api_base_url(self) -> str:
        return _HOSTS[self.environment][0]

    @property
    def apiz_base_url(self) -> str:
        return _HOSTS[self.environment][1]

    @property
    def token_url(self) -> str:
        return self.api_base_url + "/identity/v1/oauth2/token"

    @property
    def scopes_string(self) -> str:
        return " ".join(SYNC_SCOPES)

    @classmethod
    def get_config(cls) -> "EbayConfig":
        try:
            environment = EbayEnvironment(settings.EBAY_ENVIRONMENT)
        except ValueError:
            environment = EbayEnvironment.PRODUCTION
        return cls(app_id=settings.EBAY_APP_ID, cert_id=settings.EBAY_CERT_ID, environment=environment)
