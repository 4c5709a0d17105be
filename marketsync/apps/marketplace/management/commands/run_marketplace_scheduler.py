# File: marketsync/apps/marketplace/management/commands/run_marketplace_scheduler.py
"""
独立调度进程
每小时第 N 分钟对所有启用账户执行订单同步 + 佣金对账
"""
import time

from django.core.management.base import BaseCommand

from marketsync.core.repository import schema
from marketsync.core.services.sync.engine import get_sync_engine, reset_sync_engine


class Command(BaseCommand):
    help = '启动平台同步调度器 (前台运行，Ctrl+C 退出)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--run-now',
            action='store_true',
            help='启动后立即执行一轮同步',
        )

    def handle(self, *args, **options):
        schema.initialize()
        engine = get_sync_engine()

        if options['run_now']:
            result = engine.trigger_pass()
            self.stdout.write(f"首轮同步完成: 成功 {result.success}，失败 {result.failed}")

        engine.scheduler.start()
        self.stdout.write(self.style.SUCCESS(
            f"调度器已启动: 每小时第 {engine.config.SYNC_CRON_MINUTE} 分钟执行"
        ))
        try:
            while engine.scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stdout.write("收到中断信号，正在停止...")
        finally:
            reset_sync_engine()
        self.stdout.write("调度器已停止")
