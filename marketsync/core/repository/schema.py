# File: marketsync/core/repository/schema.py
"""
# ==============================================================================
# 模块名称: 数据表定义 (Table Schema)
# ==============================================================================
#
# [Purpose / 用途]
# 使用 SQLAlchemy Core 声明同步引擎所需的五张表:
# - platform_accounts    : 店铺账户 (凭证加密存储)
# - orders               : 订单 + 佣金明细
# - order_items          : 订单商品行
# - orders_request_log   : 平台 API 请求日志
# - cash_flow_statements : 平台现金流报表 (按账户 + 账期起始唯一)
#
# ==============================================================================
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from marketsync.core.components.db.client import DBClient

metadata = MetaData()

# sqlite 只有 INTEGER PRIMARY KEY 才会自增
PK = BigInteger().with_variant(Integer(), "sqlite")
Money = Numeric(14, 2)

# 账户状态
ACCOUNT_DISABLED = 0
ACCOUNT_ACTIVE = 1
ACCOUNT_EXPIRED = 2

# 佣金八项 (顺序即报表展示顺序)
COMMISSION_FIELDS = (
    "accruals_for_sale",
    "sale_commission",
    "processing_and_delivery",
    "refunds_and_cancellations",
    "services_amount",
    "compensation_amount",
    "money_transfer",
    "others_amount",
)

platform_accounts = Table(
    "platform_accounts",
    metadata,
    Column("id", PK, primary_key=True, autoincrement=True),
    Column("user_id", BigInteger, nullable=False, index=True),
    Column("platform", String(32), nullable=False),
    Column("shop_name", String(128), nullable=False),
    Column("credentials", Text, nullable=False),
    Column("status", SmallInteger, nullable=False, default=ACCOUNT_ACTIVE),
    Column("last_sync_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

orders = Table(
    "orders",
    metadata,
    Column("id", PK, primary_key=True, autoincrement=True),
    Column("user_id", BigInteger, nullable=False, index=True),
    Column("account_id", BigInteger, nullable=False, index=True),
    Column("platform", String(32), nullable=False),
    Column("platform_order_no", String(64), nullable=False, unique=True),
    Column("status", String(32), nullable=False, default="pending"),
    Column("platform_status", String(64), nullable=True),
    Column("total_amount", Money, nullable=False, default=0),
    Column("currency", String(8), nullable=True),
    Column("recipient_name", String(128), nullable=True),
    Column("recipient_phone", String(64), nullable=True),
    Column("country", String(64), nullable=True),
    Column("province", String(128), nullable=True),
    Column("city", String(128), nullable=True),
    Column("zip_code", String(32), nullable=True),
    Column("address", String(512), nullable=True),
    Column("order_time", DateTime, nullable=True),
    Column("ship_time", DateTime, nullable=True),
    Column("ship_deadline", DateTime, nullable=True),
    *[Column(name, Money, nullable=False, default=0) for name in COMMISSION_FIELDS],
    Column("profit_amount", Money, nullable=False, default=0),
    Column("commission_currency", String(8), nullable=True),
    Column("commission_synced_at", DateTime, nullable=True),
    Column("raw_data", Text, nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    Index("ix_orders_account_time", "account_id", "order_time"),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", PK, primary_key=True, autoincrement=True),
    Column("order_id", BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("platform_sku", String(128), nullable=True),
    Column("sku", String(128), nullable=True),
    Column("name", String(512), nullable=True),
    Column("quantity", Integer, nullable=False, default=1),
    Column("price", Money, nullable=False, default=0),
    Column("currency", String(8), nullable=True),
)

orders_request_log = Table(
    "orders_request_log",
    metadata,
    Column("id", PK, primary_key=True, autoincrement=True),
    Column("account_id", BigInteger, nullable=True, index=True),
    Column("platform", String(32), nullable=False),
    Column("request_type", String(32), nullable=False),
    Column("request_url", String(512), nullable=False),
    Column("request_method", String(8), nullable=False),
    Column("request_headers", Text, nullable=True),
    Column("request_body", Text, nullable=True),
    Column("response_status", Integer, nullable=True),
    Column("response_body", Text, nullable=True),
    Column("duration_ms", Integer, nullable=True),
    Column("error_message", Text, nullable=True),
    Column("created_at", DateTime, nullable=False),
)

cash_flow_statements = Table(
    "cash_flow_statements",
    metadata,
    Column("id", PK, primary_key=True, autoincrement=True),
    Column("user_id", BigInteger, nullable=False, index=True),
    Column("account_id", BigInteger, nullable=False),
    Column("platform", String(32), nullable=False),
    Column("period_begin", DateTime, nullable=False),
    Column("period_end", DateTime, nullable=True),
    Column("currency", String(8), nullable=True),
    Column("orders_amount", Money, nullable=False, default=0),
    Column("returns_amount", Money, nullable=False, default=0),
    Column("commission_amount", Money, nullable=False, default=0),
    Column("services_amount", Money, nullable=False, default=0),
    Column("delivery_and_return_amount", Money, nullable=False, default=0),
    Column("synced_at", DateTime, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("account_id", "period_begin", name="uq_cash_flow_account_period"),
)


def initialize(engine=None) -> None:
    """建表 (已存在则跳过)"""
    metadata.create_all(engine or DBClient.get_engine())


def drop_all(engine=None) -> None:
    metadata.drop_all(engine or DBClient.get_engine())
