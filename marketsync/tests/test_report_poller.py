"""
异步报表轮询测试 (不真实等待)
"""
import unittest
from datetime import datetime
from unittest import mock

from marketsync.core.services.platform.adapter import (
    REPORT_FAILED,
    REPORT_PROCESSING,
    REPORT_SUCCESS,
    REPORT_WAITING,
    ReportHandle,
    ReportState,
)
from marketsync.core.services.platform.report import ReportPoller
from marketsync.core.sys.exceptions import ReportFailedError, ReportTimeoutError

SINCE = datetime(2024, 5, 1)
UNTIL = datetime(2024, 5, 31)
ROWS = [{"posting_number": "P-1", "amount": 10}]


class ScriptedReportSource:
    """按脚本依次返回报表状态"""

    def __init__(self, statuses, handle=None, error="boom"):
        self.statuses = list(statuses)
        self.handle = handle or ReportHandle(code="R-42")
        self.error = error
        self.polls = 0

    def create_commission_report(self, credentials, since, until, account_id=None):
        return self.handle

    def get_commission_report(self, credentials, code, account_id=None):
        status = self.statuses[min(self.polls, len(self.statuses) - 1)]
        self.polls += 1
        if status == REPORT_SUCCESS:
            return ReportState(status=status, rows=ROWS)
        if status == REPORT_FAILED:
            return ReportState(status=status, error=self.error)
        return ReportState(status=status)


class ReportPollerTest(unittest.TestCase):

    def setUp(self):
        self.sleep = mock.Mock()

    def _poller(self, max_retries=10):
        return ReportPoller(delay=2.0, max_retries=max_retries, sleep=self.sleep)

    def test_succeeds_on_third_poll(self):
        source = ScriptedReportSource([REPORT_WAITING, REPORT_WAITING, REPORT_SUCCESS])
        rows = self._poller().run(source, {}, SINCE, UNTIL)
        self.assertEqual(rows, ROWS)
        self.assertEqual(source.polls, 3)
        self.assertEqual(self.sleep.call_count, 3)
        self.sleep.assert_called_with(2.0)

    def test_processing_keeps_polling(self):
        source = ScriptedReportSource([REPORT_PROCESSING, REPORT_SUCCESS])
        self.assertEqual(self._poller().run(source, {}, SINCE, UNTIL), ROWS)
        self.assertEqual(source.polls, 2)

    def test_timeout_after_exactly_max_retries(self):
        source = ScriptedReportSource([REPORT_WAITING])
        with self.assertRaises(ReportTimeoutError) as ctx:
            self._poller(max_retries=2).run(source, {}, SINCE, UNTIL)
        self.assertEqual(source.polls, 2)
        self.assertEqual(ctx.exception.report_code, "R-42")
        self.assertEqual(ctx.exception.attempts, 2)

    def test_failed_report_carries_platform_error(self):
        source = ScriptedReportSource([REPORT_WAITING, REPORT_FAILED], error="quota exceeded")
        with self.assertRaises(ReportFailedError) as ctx:
            self._poller().run(source, {}, SINCE, UNTIL)
        self.assertEqual(ctx.exception.platform_error, "quota exceeded")
        self.assertEqual(source.polls, 2)

    def test_inline_rows_skip_polling(self):
        source = ScriptedReportSource([REPORT_WAITING], handle=ReportHandle(rows=ROWS))
        self.assertEqual(self._poller().run(source, {}, SINCE, UNTIL), ROWS)
        self.assertEqual(source.polls, 0)
        self.sleep.assert_not_called()

    def test_empty_inline_rows_are_a_result(self):
        source = ScriptedReportSource([REPORT_WAITING], handle=ReportHandle(rows=[]))
        self.assertEqual(self._poller().run(source, {}, SINCE, UNTIL), [])
        self.assertEqual(source.polls, 0)

    def test_no_code_and_no_rows(self):
        source = ScriptedReportSource([REPORT_WAITING], handle=ReportHandle())
        with self.assertRaises(ReportFailedError):
            self._poller().run(source, {}, SINCE, UNTIL)
