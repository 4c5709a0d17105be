# File: marketsync/apps/marketplace/apps.py
"""
Marketplace Sync App Configuration
"""
import os
import sys

from django.apps import AppConfig


class MarketplaceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'marketsync.apps.marketplace'
    verbose_name = 'Marketplace Order Sync'

    def ready(self):
        from marketsync.common.settings import settings
        from marketsync.core.repository import schema

        # 管理命令 (migrate / test 等) 不需要建表和调度器
        if 'runserver' not in sys.argv and not settings.SCHEDULER_AUTOSTART:
            return
        # runserver 自动重载会启动两个进程，只在子进程里启动
        if 'runserver' in sys.argv and os.environ.get('RUN_MAIN') != 'true':
            return

        from marketsync.core.services.sync.engine import get_sync_engine

        schema.initialize()
        if settings.SCHEDULER_AUTOSTART:
            get_sync_engine().scheduler.start()
