"""
mptree - 物化路径树

在关系数据库表中用物化路径列维护有序树，提供节点查询、插入、移动、删除和遍历
"""

from .version import __version__, __author__, __description__

# 导出树句柄与节点
from .tree import MaterializedPathTree
from .node import Node
from .representation import TreeRepresentation, Traversal

# 导出路径编解码与查询组件
from .codec import PathCodec
from .query_cache import QueryCache, QueryKey
from .sql_builder import SQLBuilder
from .filters import FilterBuilder, FilterClause
from .transaction import TransactionRunner, TransactionState

# 导出异常
from .exceptions import (
    ErrorCode,
    TreeError,
    ConfigurationError,
    MalformedPath,
    NotFound,
    InvalidOperation,
    PathOverflow,
    StaleNode,
    TransactionFailure,
    BackingStoreError,
)

# 导出配置
from .config import (
    TreeSettings,
    LoggingSettings,
    MPTreeSettings,
    ConfigLoader,
    load_yaml_config,
)

# 导出日志
from .log import (
    setup_logger,
    setup_sql_logger,
    configure_logging,
    logger,
    get_logger,
)

# 导出工具函数
from .tree_utils import (
    build_nested,
    flatten_nested,
    find_in_nested,
    nested_depth,
)

__all__ = [
    # Version
    "__version__",
    "__author__",
    "__description__",

    # Tree
    "MaterializedPathTree",
    "Node",
    "TreeRepresentation",
    "Traversal",

    # Path / Query
    "PathCodec",
    "QueryCache",
    "QueryKey",
    "SQLBuilder",
    "FilterBuilder",
    "FilterClause",
    "TransactionRunner",
    "TransactionState",

    # Exceptions
    "ErrorCode",
    "TreeError",
    "ConfigurationError",
    "MalformedPath",
    "NotFound",
    "InvalidOperation",
    "PathOverflow",
    "StaleNode",
    "TransactionFailure",
    "BackingStoreError",

    # Config
    "TreeSettings",
    "LoggingSettings",
    "MPTreeSettings",
    "ConfigLoader",
    "load_yaml_config",

    # Log
    "setup_logger",
    "setup_sql_logger",
    "configure_logging",
    "logger",
    "get_logger",

    # Utils
    "build_nested",
    "flatten_nested",
    "find_in_nested",
    "nested_depth",
]
