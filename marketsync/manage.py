#!/usr/bin/env python
# File: marketsync/manage.py
"""
文件说明: Django 管理入口 (MarketSync Management Utility)
"""
import os
import sys
from pathlib import Path


def main():
    """Run administrative tasks."""
    # 允许在 marketsync/ 目录内直接执行
    project_root = Path(__file__).resolve().parent.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))

    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'marketsync.django_config.settings')

    from marketsync.django_config import install_pymysql
    install_pymysql()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
