"""查询缓存

每个树句柄持有一个 QueryCache，包含两层互相独立的映射：
    - 逻辑操作键 -> 生成的 SQL 文本（每个键只生成一次）
    - SQL 文本 -> 可复用的预编译语句句柄（SQLAlchemy TextClause）

表名、列名在句柄初始化后不再变化，所以缓存在句柄生命周期内从不失效。
没有进程级的全局缓存，同一进程内的多个句柄互不干扰。

使用示例:
    cache = QueryCache()
    sql = cache.get_sql(QueryKey.SELECT_BY_ID, lambda: "SELECT * FROM t WHERE id = :id")
    stmt = cache.get_statement(sql, text)
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, Union

from .log import get_logger

logger = get_logger("mptree.query_cache")


class QueryKey(str, Enum):
    """固定的逻辑操作键"""

    COUNT_TABLE = "COUNT_TABLE"
    SELECT_ID_COLUMN = "SELECT_ID_COLUMN"
    SELECT_PATH_COLUMN = "SELECT_PATH_COLUMN"

    SELECT_BY_ID = "SELECT_BY_ID"
    SELECT_BY_PATH = "SELECT_BY_PATH"
    SELECT_ID_BY_PATH = "SELECT_ID_BY_PATH"

    SELECT_CHILDREN = "SELECT_CHILDREN"
    COUNT_CHILDREN = "COUNT_CHILDREN"
    SELECT_MAX_CHILD_PATH = "SELECT_MAX_CHILD_PATH"
    SELECT_DESCENDANTS = "SELECT_DESCENDANTS"
    COUNT_DESCENDANTS = "COUNT_DESCENDANTS"
    SELECT_ANCESTORS = "SELECT_ANCESTORS"

    UPDATE_PATH_BY_ID = "UPDATE_PATH_BY_ID"
    UPDATE_PATH_PREFIX = "UPDATE_PATH_PREFIX"

    DELETE_BY_ID = "DELETE_BY_ID"
    DELETE_SUBTREE = "DELETE_SUBTREE"
    DELETE_DESCENDANTS = "DELETE_DESCENDANTS"


CacheKey = Union[QueryKey, str]


def column_key(prefix: str, columns: Iterable[str]) -> str:
    """按列集合生成动态键，如 INSERT:name,title"""
    return f"{prefix}:{','.join(columns)}"


class QueryCache:
    """单个树句柄的查询缓存

    属性:
        sql_hits / sql_misses: SQL 文本缓存命中统计
        statement_hits / statement_misses: 语句句柄缓存命中统计
    """

    def __init__(self):
        self._sql: Dict[CacheKey, str] = {}
        self._statements: Dict[str, Any] = {}
        self.sql_hits = 0
        self.sql_misses = 0
        self.statement_hits = 0
        self.statement_misses = 0

    def get_sql(self, key: CacheKey, build: Callable[[], str]) -> str:
        """获取逻辑键对应的 SQL 文本，不存在时调用 build 生成并缓存"""
        sql = self._sql.get(key)
        if sql is not None:
            self.sql_hits += 1
            return sql

        self.sql_misses += 1
        sql = build()
        self._sql[key] = sql
        logger.debug(f"生成 SQL [{getattr(key, 'value', key)}]: {sql}")
        return sql

    def get_statement(self, sql: str, prepare: Callable[[str], Any]) -> Any:
        """获取 SQL 文本对应的语句句柄，不存在时调用 prepare 创建并缓存"""
        statement = self._statements.get(sql)
        if statement is not None:
            self.statement_hits += 1
            return statement

        self.statement_misses += 1
        statement = prepare(sql)
        self._statements[sql] = statement
        return statement

    def set_statement(self, sql: str, statement: Any) -> None:
        """替换 SQL 文本对应的语句句柄（重新预编译），不产生警告"""
        self._statements[sql] = statement

    def has_sql(self, key: CacheKey) -> bool:
        return key in self._sql

    def has_statement(self, sql: str) -> bool:
        return sql in self._statements

    def sql_keys(self) -> list:
        return list(self._sql.keys())

    def stats(self) -> Dict[str, int]:
        """缓存统计信息"""
        return {
            "sql_entries": len(self._sql),
            "sql_hits": self.sql_hits,
            "sql_misses": self.sql_misses,
            "statement_entries": len(self._statements),
            "statement_hits": self.statement_hits,
            "statement_misses": self.statement_misses,
        }

    def clone(self) -> "QueryCache":
        """克隆缓存

        SQL 文本缓存按值复制；语句句柄缓存按引用共享，
        与共享的连接保持一致。
        """
        other = QueryCache.__new__(QueryCache)
        other._sql = dict(self._sql)
        other._statements = self._statements
        other.sql_hits = 0
        other.sql_misses = 0
        other.statement_hits = 0
        other.statement_misses = 0
        return other

    def shares_statements_with(self, other: "QueryCache") -> bool:
        """是否与另一个缓存共享语句句柄"""
        return self._statements is other._statements

    def __len__(self) -> int:
        return len(self._sql)

    def __repr__(self) -> str:
        return f"QueryCache(sql={len(self._sql)}, statements={len(self._statements)})"


__all__ = ["QueryKey", "CacheKey", "QueryCache", "column_key"]
