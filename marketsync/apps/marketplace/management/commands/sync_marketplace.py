# File: marketsync/apps/marketplace/management/commands/sync_marketplace.py
"""
手动同步命令
不指定账户时执行一轮全账户同步 (与定时任务相同)；指定 --account 时只同步该账户。
现金流报表只在 --only cash-flows 时同步。
"""
from django.core.management.base import BaseCommand, CommandError

from marketsync.core.repository import schema
from marketsync.core.services.sync.engine import get_sync_engine
from marketsync.core.sys.context import clear_context, new_trace
from marketsync.core.sys.exceptions import AppException
from marketsync.core.sys.utils import parse_datetime


class Command(BaseCommand):
    help = '执行一次平台订单 / 佣金同步'

    def add_arguments(self, parser):
        parser.add_argument('--account', type=int, help='账户 ID (缺省为全部启用账户)')
        parser.add_argument(
            '--only',
            choices=['orders', 'commissions', 'cash-flows'],
            help='只执行订单同步 / 佣金对账 / 现金流报表同步',
        )
        parser.add_argument('--since', help='起始时间 (ISO-8601, UTC)')
        parser.add_argument('--until', help='结束时间 (ISO-8601, UTC)')
        parser.add_argument('--status', help='佣金对账只处理该标准状态的订单')
        parser.add_argument(
            '--full-window',
            action='store_true',
            help='佣金对账不按本地订单过滤，写回窗口内全部结果',
        )

    def handle(self, *args, **options):
        schema.initialize()
        engine = get_sync_engine()
        new_trace("sync_marketplace")
        try:
            if not options['account']:
                result = engine.trigger_pass()
                self.stdout.write(self.style.SUCCESS(
                    f"同步完成: 成功 {result.success} 个账户，失败 {result.failed} 个账户"
                ))
                return
            self._sync_one(engine, options)
        except AppException as e:
            raise CommandError(e.message)
        finally:
            clear_context()

    def _sync_one(self, engine, options):
        account_id = options['account']
        since, until = parse_datetime(options['since']), parse_datetime(options['until'])
        if (options['since'] and since is None) or (options['until'] and until is None):
            raise CommandError('--since / --until 必须是 ISO-8601 时间')

        if options['only'] == 'cash-flows':
            cash = engine.sync_account_cash_flows(account_id, since=since, until=until)
            self.stdout.write(
                f"现金流: 共 {cash.total}，新增 {cash.created}，更新 {cash.updated}，跳过 {cash.skipped}"
            )
            self.stdout.write(self.style.SUCCESS(f"账户 {account_id} 同步完成"))
            return

        if options['only'] != 'commissions':
            orders = engine.sync_account_orders(account_id, since=since, until=until)
            self.stdout.write(
                f"订单: 共 {orders.total}，新增 {orders.created}，更新 {orders.updated}，失败 {orders.failed}"
            )
        if options['only'] != 'orders':
            commissions = engine.sync_account_commissions(
                account_id,
                since=since,
                until=until,
                status=options['status'],
                full_window=options['full_window'],
            )
            self.stdout.write(
                f"佣金 ({commissions.strategy}): 处理 {commissions.processed}，更新 {commissions.updated_count}"
            )
        self.stdout.write(self.style.SUCCESS(f"账户 {account_id} 同步完成"))
