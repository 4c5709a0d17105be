# File: marketsync/core/services/platform/ebay/__init__.py
"""
# ==============================================================================
# 模块名称: eBay API 集成 (eBay Integration)
# ==============================================================================
#
# [Purpose / 用途]
# - OAuth 2.0 refresh_token -> access_token
# - Fulfillment API (订单数据)
# - Finances API (财务数据)
#
# ==============================================================================
"""

from .adapter import EbayAdapter
from .client import EbayClient
from .config import EbayConfig
from .oauth import EbayOAuthManager

__all__ = ['EbayAdapter', 'EbayClient', 'EbayConfig', 'EbayOAuthManager']
