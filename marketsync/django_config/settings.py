# File: marketsync/django_config/settings.py
"""
文件说明: Django 核心配置 (Core Settings)

Django 只承载认证 / Session 与手动同步 API；
业务表 (账户 / 订单 / 请求日志) 由 SQLAlchemy 管理 (core.repository.schema)。
数据库与密钥统一从 marketsync.common.settings 读取 (SSOT)。
"""

from pathlib import Path

from marketsync.common.settings import settings as app_settings

# -----------------------------------------------------------------------------
# 1. 路径
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# -----------------------------------------------------------------------------
# 2. 安全与核心
# -----------------------------------------------------------------------------
SECRET_KEY = app_settings.DJANGO_SECRET_KEY
DEBUG = app_settings.DEBUG
ALLOWED_HOSTS = ['*']

# -----------------------------------------------------------------------------
# 3. 应用注册 (Installed Apps)
# -----------------------------------------------------------------------------
INSTALLED_APPS = [
    # --- Django Native ---
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',

    # --- MarketSync ---
    'marketsync.apps.marketplace',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
]

ROOT_URLCONF = 'marketsync.django_config.urls'
WSGI_APPLICATION = 'marketsync.django_config.wsgi.application'

# -----------------------------------------------------------------------------
# 4. 数据库配置 (SSOT)
# -----------------------------------------------------------------------------
if app_settings.DATABASE_URL.startswith('sqlite'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': app_settings.DATABASE_URL.split(':///', 1)[-1] or ':memory:',
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.mysql',
            'NAME': app_settings.DB_NAME,
            'USER': app_settings.DB_USER,
            'PASSWORD': app_settings.DB_PASS,
            'HOST': app_settings.DB_HOST,
            'PORT': app_settings.DB_PORT,
            'OPTIONS': {
                'charset': app_settings.DB_CHARSET,
                'init_command': "SET sql_mode='STRICT_TRANS_TABLES'",
            },
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# -----------------------------------------------------------------------------
# 5. 时区 (所有同步时间均为 UTC)
# -----------------------------------------------------------------------------
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = False

LOGIN_URL = '/login/'

# -----------------------------------------------------------------------------
# 6. 日志 (与 core.sys.logger 同一格式，注入 trace_id / user)
# -----------------------------------------------------------------------------
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'trace_context': {
            '()': 'marketsync.core.sys.logger.TraceContextFilter',
        },
    },
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s [%(trace_id)s|%(user)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'filters': ['trace_context'],
        },
    },
    'loggers': {
        'marketsync': {
            'handlers': ['console'],
            'level': 'DEBUG' if DEBUG else 'INFO',
            'propagate': False,
        },
        'apscheduler': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    },
}
