"""
日志工具模块

mptree 的核心代码只通过 get_logger 获取 "mptree.*" 日志器，不主动添加处理器。
需要查看树操作日志或执行的 SQL 时，由调用方使用 configure_logging / setup_sql_logger 开启。
"""

import inspect
import logging
import os
from typing import Optional

from ..config import LoggingSettings


# 树操作日志格式
DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# SQL 日志格式
SQL_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "mptree",
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    propagate: bool = True,
) -> logging.Logger:
    """为指定日志器重新配置处理器

    Args:
        name: 日志器名称，默认为 mptree 包日志器
        level: 日志级别，无法识别时使用 INFO
        log_file: 日志文件路径，目录不存在时自动创建
        log_format: 日志格式，默认 DEFAULT_LOG_FORMAT
        console: 是否输出到控制台
        propagate: 是否传播到父日志器

    使用示例:
        setup_logger(level="DEBUG", log_file="logs/tree.log")
    """
    _logger = logging.getLogger(name)
    _logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _logger.propagate = propagate

    # 重复调用时替换而不是叠加处理器
    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        _logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)

    return _logger


def setup_sql_logger(
    level: str = "DEBUG",
    log_file: str = None,
    console: bool = False,
    config: Optional[LoggingSettings] = None,
) -> Optional[logging.Logger]:
    """输出树操作执行的 SQL（sqlalchemy.engine 日志器）

    路径前缀改写、兄弟右移等语句都经由 sqlalchemy.engine 输出。

    Args:
        level: 日志级别（提供 config 时忽略）
        log_file: SQL 日志文件路径（提供 config 时忽略）
        console: 是否输出到控制台
        config: 日志配置，sql_log_enabled 为 False 时不做任何配置

    Returns:
        SQL 日志器；被 config 关闭时返回 None
    """
    if config is not None:
        if not config.sql_log_enabled:
            return None
        level = config.sql_log_level
        log_file = config.sql_log_file_path

    return setup_logger(
        name="sqlalchemy.engine",
        level=level,
        log_file=log_file,
        log_format=SQL_LOG_FORMAT,
        console=console,
        propagate=False,
    )


def configure_logging(config: Optional[LoggingSettings] = None) -> logging.Logger:
    """按 LoggingSettings 配置 mptree 日志器，启用时同时配置 SQL 日志

    使用示例:
        from mptree.config import LoggingSettings
        from mptree.log import configure_logging

        configure_logging(LoggingSettings(level="DEBUG", sql_log_enabled=True))
    """
    config = config or LoggingSettings()
    setup_sql_logger(config=config)
    return setup_logger(
        name="mptree",
        level=config.level,
        log_file=config.file_path or None,
        console=config.enable_console,
    )


def get_logger(name: str = None) -> logging.Logger:
    """获取日志器

    Args:
        name: None 时使用调用模块的 __name__；不带点号的简写添加 "mptree." 前缀
              （"node" -> "mptree.node"），带点号的名称原样使用
    """
    if name is None:
        frame = inspect.currentframe()
        caller = frame.f_back if frame is not None else None
        name = caller.f_globals.get("__name__", "mptree") if caller is not None else "mptree"
    elif name != "mptree" and "." not in name:
        name = f"mptree.{name}"

    return logging.getLogger(name)


# 包日志器
logger = logging.getLogger("mptree")
