# File: marketsync/django_config/wsgi.py
"""
文件说明: WSGI 生产环境接口
"""
import os

from marketsync.django_config import install_pymysql

install_pymysql()

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'marketsync.django_config.settings')

application = get_wsgi_application()
