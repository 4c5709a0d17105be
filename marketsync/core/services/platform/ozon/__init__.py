# File: marketsync/core/services/platform/ozon/__init__.py
"""
Ozon Seller API 集成: FBS 发货单、财务流水 / 单订单汇总 / 结算报表。
"""

from .adapter import OzonAdapter
from .client import OzonClient, OzonCredentials

__all__ = ['OzonAdapter', 'OzonClient', 'OzonCredentials']
