# File: marketsync/core/services/platform/adapter.py
"""
# ==============================================================================
# 模块名称: 平台适配器接口 (Platform Adapter Interface)
# ==============================================================================
#
# [Purpose / 用途]
# 定义每个电商平台必须实现的统一接口，以及在适配器之间传递的数据结构。
#
# [Architecture / 架构]
# - PlatformAdapter (必选):
#     platform_id / display_label / STATUS_MAPPING / credential_fields()
#     test_connection / fetch_orders / fetch_commissions (按时间窗口直接拉取)
# - TargetedCommissionSource (可选): 按订单号精确查询佣金
# - ReportCommissionSource (可选): 异步报表 (创建 -> 轮询 -> 汇总)
# - OrderDetailSource (可选): 按订单号查询单个订单详情
# - CashFlowSource (可选): 按周期拉取现金流报表
#
# 可选能力通过 isinstance 判断，编排层据此选择佣金获取策略。
#
# ==============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from marketsync.core.repository.schema import COMMISSION_FIELDS
from marketsync.core.services.platform.status import STATUS_DELIVERED

Credentials = Mapping[str, str]

REPORT_WAITING = "waiting"
REPORT_PROCESSING = "processing"
REPORT_SUCCESS = "success"
REPORT_FAILED = "failed"


@dataclass
class CredentialField:
    """凭证表单字段 (前端据此渲染账户录入表单)"""
    key: str
    label: str
    type: str = "text"  # text / password / select
    required: bool = True
    default: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "default": self.default,
        }


@dataclass
class RemoteOrderItem:
    platform_sku: str
    name: str = ""
    quantity: int = 1
    price: Decimal = Decimal("0")
    currency: Optional[str] = None
    sku: Optional[str] = None


@dataclass
class RemoteOrder:
    """平台订单的标准化视图 (适配器输出)"""
    platform_order_no: str
    platform_status: str
    total_amount: Decimal = Decimal("0")
    currency: Optional[str] = None
    order_time: Optional[datetime] = None
    ship_time: Optional[datetime] = None
    ship_deadline: Optional[datetime] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    country: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    address: Optional[str] = None
    items: List[RemoteOrderItem] = field(default_factory=list)
    raw: Optional[Dict[str, Any]] = None


@dataclass
class CommissionSummary:
    """
    单个订单的佣金明细 (八项)。
    profit 恒等于八项之和，不单独存储。
    """
    platform_order_no: str
    accruals_for_sale: Decimal = Decimal("0")
    sale_commission: Decimal = Decimal("0")
    processing_and_delivery: Decimal = Decimal("0")
    refunds_and_cancellations: Decimal = Decimal("0")
    services_amount: Decimal = Decimal("0")
    compensation_amount: Decimal = Decimal("0")
    money_transfer: Decimal = Decimal("0")
    others_amount: Decimal = Decimal("0")
    currency: Optional[str] = None

    @property
    def profit(self) -> Decimal:
        return sum((getattr(self, name) for name in COMMISSION_FIELDS), Decimal("0"))

    def amounts(self) -> Dict[str, Decimal]:
        return {name: getattr(self, name) for name in COMMISSION_FIELDS}


@dataclass
class ReportHandle:
    """
    创建报表的返回值。
    平台可能直接内联返回数据 (rows)，也可能返回任务编号 (code) 需要轮询。
    """
    code: Optional[str] = None
    rows: Optional[List[Dict[str, Any]]] = None


@dataclass
class ReportState:
    status: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: str = ""


@dataclass
class CashFlowEntry:
    """一个结算周期的现金流汇总"""
    period_begin: Optional[datetime]
    period_end: Optional[datetime] = None
    currency: Optional[str] = None
    orders_amount: Decimal = Decimal("0")
    returns_amount: Decimal = Decimal("0")
    commission_amount: Decimal = Decimal("0")
    services_amount: Decimal = Decimal("0")
    delivery_and_return_amount: Decimal = Decimal("0")


class PlatformAdapter(ABC):
    platform_id: str = ""
    display_label: str = ""
    # 平台原始状态 -> 标准状态，注册适配器时同步登记到 StatusMappingRegistry
    STATUS_MAPPING: Dict[str, str] = {}
    # 进入这些标准状态的订单才参与定时佣金对账 (平台已结算)
    COMMISSION_STATUSES: Tuple[str, ...] = (STATUS_DELIVERED,)

    @abstractmethod
    def credential_fields(self) -> List[CredentialField]:
        ...

    @abstractmethod
    def test_connection(self, credentials: Credentials, account_id: Optional[int] = None) -> bool:
        """凭证可用返回 True；认证失败抛 InvalidCredentialsError"""

    @abstractmethod
    def fetch_orders(self, credentials: Credentials, since: datetime, until: datetime,
                     account_id: Optional[int] = None) -> List[RemoteOrder]:
        """拉取窗口内全部订单 (内部完成分页)"""

    @abstractmethod
    def fetch_commissions(self, credentials: Credentials, since: datetime, until: datetime,
                          account_id: Optional[int] = None) -> List[CommissionSummary]:
        """拉取窗口内财务流水并按订单号汇总"""

    def describe(self) -> Dict[str, Any]:
        return {
            "platform": self.platform_id,
            "label": self.display_label,
            "credential_fields": [f.as_dict() for f in self.credential_fields()],
        }


class TargetedCommissionSource(ABC):
    @abstractmethod
    def fetch_commissions_for(self, credentials: Credentials, order_numbers: List[str],
                              account_id: Optional[int] = None) -> List[CommissionSummary]:
        ...


class ReportCommissionSource(ABC):
    @abstractmethod
    def create_commission_report(self, credentials: Credentials, since: datetime, until: datetime,
                                 account_id: Optional[int] = None) -> ReportHandle:
        ...

    @abstractmethod
    def get_commission_report(self, credentials: Credentials, code: str,
                              account_id: Optional[int] = None) -> ReportState:
        ...

    @abstractmethod
    def summarize_report_rows(self, credentials: Credentials,
                              rows: List[Dict[str, Any]]) -> List[CommissionSummary]:
        ...


class OrderDetailSource(ABC):
    @abstractmethod
    def fetch_order_detail(self, credentials: Credentials, platform_order_no: str,
                           account_id: Optional[int] = None) -> Optional[RemoteOrder]:
        """平台不存在该订单时返回 None"""


class CashFlowSource(ABC):
    @abstractmethod
    def fetch_cash_flows(self, credentials: Credentials, since: datetime, until: datetime,
                         account_id: Optional[int] = None) -> List[CashFlowEntry]:
        ...
