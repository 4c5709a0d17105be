# File: marketsync/apps/marketplace/urls.py
"""
Marketplace Sync URL Routes
"""
from django.urls import path
from . import api

app_name = 'marketplace'

urlpatterns = [
    # === 平台 / 账户 ===
    path('api/platforms/', api.list_platforms, name='api_platforms'),
    path('api/accounts/', api.accounts, name='api_accounts'),
    path('api/accounts/<int:account_id>/', api.account_detail, name='api_account_detail'),
    path('api/accounts/<int:account_id>/test/', api.test_account, name='api_test_account'),
    path('api/accounts/<int:account_id>/request-logs/', api.request_logs, name='api_request_logs'),

    # === 手动同步 ===
    path('api/accounts/<int:account_id>/sync/orders/', api.sync_orders, name='api_sync_orders'),
    path('api/accounts/<int:account_id>/sync/commissions/', api.sync_commissions, name='api_sync_commissions'),
    path('api/accounts/<int:account_id>/sync/cash-flows/', api.sync_cash_flows, name='api_sync_cash_flows'),
    path('api/orders/<int:order_id>/sync/', api.sync_single_order, name='api_sync_single_order'),
    path('api/orders/<int:order_id>/sync/commission/', api.sync_order_commission,
         name='api_sync_order_commission'),
    path('api/sync/trigger/', api.trigger_sync, name='api_trigger_sync'),

    # === 查询 ===
    path('api/orders/', api.list_orders, name='api_orders'),
    path('api/orders/<int:order_id>/', api.order_detail, name='api_order_detail'),
    path('api/cash-flows/', api.list_cash_flows, name='api_cash_flows'),
    path('api/cash-flows/<int:statement_id>/', api.cash_flow_detail, name='api_cash_flow_detail'),
]
