"""版本信息"""

__version__ = "0.1.0"
__author__ = "mptree contributors"
__description__ = "基于 SQLAlchemy 的物化路径树"
