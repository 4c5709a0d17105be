# File: marketsync/core/services/sync/__init__.py
"""
# ==============================================================================
# 模块名称: 订单 / 佣金同步服务 (Sync Services)
# ==============================================================================
#
# [Purpose / 用途]
# - OrderSyncService: 订单拉取与幂等写入、单订单刷新
# - CommissionReconciler: 佣金八项获取与写回
# - CashFlowService: 现金流报表同步与查询
# - OrderQueryService: 订单列表 / 详情 / 请求日志
# - SyncScheduler: 每小时全账户同步
# - AccountService: 店铺绑定 / 修改 / 删除 / 测试连接 / 凭证脱敏
#
# 装配入口见 engine.get_sync_engine()。
#
# ==============================================================================
"""

from .accounts import AccountService
from .base import Page
from .cash_flow import CashFlowService, CashFlowSyncResult
from .commission import CommissionReconciler, ReconcileResult
from .orders import OrderSyncService, SyncOrdersResult
from .queries import OrderQueryService
from .scheduler import PassResult, SyncScheduler

__all__ = [
    'AccountService',
    'Page',
    'CashFlowService',
    'CashFlowSyncResult',
    'CommissionReconciler',
    'ReconcileResult',
    'OrderSyncService',
    'SyncOrdersResult',
    'OrderQueryService',
    'PassResult',
    'SyncScheduler',
]
