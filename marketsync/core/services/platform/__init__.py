# File: marketsync/core/services/platform/__init__.py
"""
# ==============================================================================
# 模块名称: 电商平台集成 (Marketplace Platform Integration)
# ==============================================================================
#
# [Purpose / 用途]
# - 统一的平台适配器接口与注册表
# - 平台状态 -> 系统标准状态映射
# - 异步报表轮询
#
# [Architecture / 架构]
# - Layer: Infrastructure Layer (外部 API 集成)
# - Adapters: ozon/, ebay/
#
# ==============================================================================
"""

from .adapter import (
    CashFlowEntry,
    CashFlowSource,
    CommissionSummary,
    CredentialField,
    OrderDetailSource,
    PlatformAdapter,
    RemoteOrder,
    RemoteOrderItem,
    ReportCommissionSource,
    ReportHandle,
    ReportState,
    TargetedCommissionSource,
)
from .registry import AdapterRegistry
from .report import ReportPoller
from .status import StatusMappingRegistry

__all__ = [
    'CashFlowEntry',
    'CashFlowSource',
    'CommissionSummary',
    'CredentialField',
    'OrderDetailSource',
    'PlatformAdapter',
    'RemoteOrder',
    'RemoteOrderItem',
    'ReportCommissionSource',
    'ReportHandle',
    'ReportState',
    'TargetedCommissionSource',
    'AdapterRegistry',
    'ReportPoller',
    'StatusMappingRegistry',
]
