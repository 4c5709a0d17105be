"""
SQLAlchemy 数据库访问组件 (引擎管理 / DataFrame 查询 / 带审计的写操作)
"""
