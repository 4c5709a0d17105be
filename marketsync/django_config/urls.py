# File: marketsync/django_config/urls.py
"""
文件说明: 路由总入口 (Root URL Configuration)
"""

from django.urls import path, include
from django.http import JsonResponse

from marketsync.common.settings import settings


def health_check(request):
    """
    [API] 系统心跳检测
    """
    return JsonResponse({
        "status": "online",
        "system": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timezone": "UTC",
    })


urlpatterns = [
    path('api/health/', health_check, name='api_health'),

    # --- 平台订单同步 / 佣金对账 ---
    path('marketplace/', include('marketsync.apps.marketplace.urls', namespace='marketplace')),
]
