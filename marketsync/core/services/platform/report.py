# File: marketsync/core/services/platform/report.py
"""
# ==============================================================================
# 模块名称: 异步报表轮询 (Report Poller)
# ==============================================================================
#
# [Purpose / 用途]
# 部分平台的佣金数据需要先创建报表任务，再轮询结果:
#   create -> (内联 rows 直接返回) / code
#   poll: success -> rows
#         failed  -> ReportFailedError
#         waiting / processing -> 继续
#   次数耗尽 -> ReportTimeoutError
#
# 每次轮询前等待 delay 秒；sleep 可注入 (测试不真实等待)。
#
# ==============================================================================
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from marketsync.core.services.base import BaseService
from marketsync.core.services.platform.adapter import (
    REPORT_FAILED,
    REPORT_PROCESSING,
    REPORT_SUCCESS,
    REPORT_WAITING,
    Credentials,
    ReportCommissionSource,
)
from marketsync.core.sys.exceptions import ReportFailedError, ReportTimeoutError


class ReportPoller(BaseService):

    def __init__(self, delay: float = 2.0, max_retries: int = 10,
                 sleep: Callable[[float], None] = time.sleep):
        super().__init__()
        self.delay = delay
        self.max_retries = max_retries
        self.sleep = sleep

    def run(self, source: ReportCommissionSource, credentials: Credentials,
            since: datetime, until: datetime, account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """创建报表并等待结果，返回原始行"""
        handle = source.create_commission_report(credentials, since, until, account_id=account_id)
        if handle.rows is not None:
            self.log(f"📄 Report returned inline ({len(handle.rows)} rows)")
            return handle.rows
        if not handle.code:
            raise ReportFailedError("-", "platform returned neither rows nor report code")
        return self.wait(source, credentials, handle.code, account_id=account_id)

    def wait(self, source: ReportCommissionSource, credentials: Credentials, code: str,
             account_id: Optional[int] = None) -> List[Dict[str, Any]]:
        for attempt in range(1, self.max_retries + 1):
            self.sleep(self.delay)
            state = source.get_commission_report(credentials, code, account_id=account_id)

            if state.status == REPORT_SUCCESS:
                self.log(f"✅ Report {code} ready after {attempt} polls ({len(state.rows)} rows)")
                return state.rows
            if state.status == REPORT_FAILED:
                self.log(f"❌ Report {code} failed: {state.error}", level="error")
                raise ReportFailedError(code, state.error)
            if state.status not in (REPORT_WAITING, REPORT_PROCESSING):
                self.log(f"⚠️ Report {code} unknown status '{state.status}', keep polling", level="warning")
            else:
                self.log(f"⏳ Report {code} {state.status} ({attempt}/{self.max_retries})", level="debug")

        raise ReportTimeoutError(code, self.max_retries)
