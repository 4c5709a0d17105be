# common/settings.py
"""
文件说明: 全局配置中心 (Settings)
主要功能:
1. 路径定义与环境加载 (.env)。
2. 数据库连接字符串生成。
3. 凭证加密密钥 (Credential Vault Key)。
4. 同步调度参数 (Scheduler cadence / lookback windows / report polling)。
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


class Settings:
    # =========================================================================
    # 1. 路径定义 (Path Definitions)
    # =========================================================================
    # Points to project root (common -> marketsync -> root)
    BASE_DIR = Path(__file__).resolve().parent.parent.parent

    # =========================================================================
    # 2. 版本与元数据
    # =========================================================================
    APP_NAME = "MarketSync"
    APP_VERSION = "V1.0.0"

    # =========================================================================
    # 3. 数据库配置
    # =========================================================================
    DATABASE_URL = os.getenv("DATABASE_URL", "")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = _env_int("DB_PORT", 3306)
    DB_USER = os.getenv("DB_USER", "root")
    DB_PASS = os.getenv("DB_PASS", "")
    DB_NAME = os.getenv("DB_NAME", "marketsync")
    DB_CHARSET = os.getenv("DB_CHARSET", "utf8mb4")

    @property
    def SQLALCHEMY_URL(self) -> str:
        # DATABASE_URL 优先 (sqlite / postgres 等)，否则拼接 MySQL
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}:"
            f"{self.DB_PORT}/{self.DB_NAME}?charset={self.DB_CHARSET}"
        )

    # =========================================================================
    # 4. 凭证加密 (Credential Vault)
    # =========================================================================
    # 必须为 32 字节 (AES-256-GCM)
    CREDENTIAL_SECRET_KEY = os.getenv("CREDENTIAL_SECRET_KEY", "")

    # =========================================================================
    # 5. 同步调度参数
    # =========================================================================
    # 每小时第 5 分钟执行，避开整点高峰
    SYNC_CRON_MINUTE = _env_int("SYNC_CRON_MINUTE", 5)
    SYNC_ORDER_LOOKBACK_HOURS = _env_int("SYNC_ORDER_LOOKBACK_HOURS", 2)
    SYNC_COMMISSION_LOOKBACK_DAYS = _env_int("SYNC_COMMISSION_LOOKBACK_DAYS", 30)

    # 手动同步默认窗口
    MANUAL_ORDER_WINDOW_DAYS = _env_int("MANUAL_ORDER_WINDOW_DAYS", 7)
    MANUAL_COMMISSION_WINDOW_DAYS = _env_int("MANUAL_COMMISSION_WINDOW_DAYS", 30)
    MANUAL_CASH_FLOW_WINDOW_DAYS = _env_int("MANUAL_CASH_FLOW_WINDOW_DAYS", 30)

    # 异步报表轮询
    REPORT_POLL_DELAY_SECONDS = _env_float("REPORT_POLL_DELAY_SECONDS", 2.0)
    REPORT_POLL_MAX_RETRIES = _env_int("REPORT_POLL_MAX_RETRIES", 10)

    # =========================================================================
    # 6. 平台 HTTP 参数
    # =========================================================================
    PLATFORM_HTTP_TIMEOUT = _env_int("PLATFORM_HTTP_TIMEOUT", 60)
    OZON_API_BASE_URL = os.getenv("OZON_API_BASE_URL", "https://api-seller.ozon.ru")

    # eBay 应用级凭证 (用户 Token 存在账户加密凭证中)
    EBAY_ENVIRONMENT = os.getenv("EBAY_ENVIRONMENT", "production").lower()
    EBAY_APP_ID = os.getenv("EBAY_APP_ID", "")
    EBAY_CERT_ID = os.getenv("EBAY_CERT_ID", "")

    # =========================================================================
    # 7. Django
    # =========================================================================
    DJANGO_SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-marketsync-dev-key")
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
    # 是否随 Web 进程启动调度器 (多 worker 部署时建议关闭，改用 management command)
    SCHEDULER_AUTOSTART = os.getenv("SCHEDULER_AUTOSTART", "false").lower() == "true"


settings = Settings()
