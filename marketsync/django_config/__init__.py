import pymysql


def install_pymysql() -> None:
    """
    用 PyMySQL 充当 Django 的 MySQLdb 驱动。
    Django 要求 mysqlclient >= 2.2.1，PyMySQL 的兼容层报告旧版本号，需要覆盖。
    """
    pymysql.install_as_MySQLdb()
    import MySQLdb
    if MySQLdb.version_info < (2, 2, 1):
        MySQLdb.version_info = (2, 2, 1, 'final', 0)
        MySQLdb.__version__ = '2.2.1'
