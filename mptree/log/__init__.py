"""日志模块

提供日志配置与获取：
- get_logger: 按模块名获取日志器（自动添加 mptree 前缀）
- setup_logger / configure_logging: 控制台与文件输出
- setup_sql_logger: 输出树操作执行的 SQL

使用示例:
    from mptree.log import setup_logger, get_logger

    setup_logger("mptree", level="DEBUG")
    logger = get_logger("tree")
"""

from .logger import (
    setup_logger,
    setup_sql_logger,
    configure_logging,
    DEFAULT_LOG_FORMAT,
    SQL_LOG_FORMAT,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_sql_logger",
    "configure_logging",
    "DEFAULT_LOG_FORMAT",
    "SQL_LOG_FORMAT",
    "logger",
    "get_logger",
]
