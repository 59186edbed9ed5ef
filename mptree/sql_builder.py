"""SQL 文本生成

按逻辑操作键生成树操作使用的 SQL 文本。表名、列名在构造时按当前方言加引号，
生成结果交给 QueryCache 缓存，同一个键在句柄生命周期内只生成一次。

所有语句使用命名绑定参数（:id、:path、:pattern 等），
由 SQLAlchemy 按驱动的 paramstyle 转换。
"""

from typing import Dict, Sequence, Tuple

from .exceptions import ConfigurationError
from .query_cache import CacheKey, QueryKey


class SQLBuilder:
    """树操作 SQL 生成器

    Args:
        table_name: 表名，可带 schema 前缀（如 "public.category"）
        id_column: 主键列名
        path_column: 路径列名
        dialect: SQLAlchemy 方言，用于标识符引号和字符串拼接语法
    """

    # 需要展开的绑定参数（IN 列表）
    EXPANDING: Dict[CacheKey, Tuple[str, ...]] = {
        QueryKey.SELECT_ANCESTORS: ("paths",),
    }

    def __init__(self, table_name: str, id_column: str, path_column: str, dialect):
        preparer = dialect.identifier_preparer
        self._quote = preparer.quote
        self.dialect_name = dialect.name
        self.table = ".".join(preparer.quote(part) for part in table_name.split("."))
        self.id_col = preparer.quote(id_column)
        self.path_col = preparer.quote(path_column)

    def quote(self, name: str) -> str:
        """按方言给列名加引号"""
        return self._quote(name)

    def expanding_params(self, key: CacheKey) -> Tuple[str, ...]:
        return self.EXPANDING.get(key, ())

    def build(self, key: QueryKey) -> str:
        """生成固定逻辑键对应的 SQL"""
        try:
            name = QueryKey(key).value.lower()
        except ValueError:
            raise ConfigurationError(f"未知的查询键: {key}") from None
        return getattr(self, f"_sql_{name}")()

    # ==================== 拼接 ====================

    def _prefix_rewrite_expr(self) -> str:
        """:new_prefix 拼接路径列从 :cut 开始的剩余部分"""
        path = self.path_col
        if self.dialect_name in ("mysql", "mariadb"):
            return f"CONCAT(:new_prefix, SUBSTR({path}, :cut))"
        if self.dialect_name == "mssql":
            return f":new_prefix + SUBSTRING({path}, :cut, LEN({path}))"
        # sqlite 的 SUBSTR 需要显式给出第三个参数
        return f":new_prefix || SUBSTR({path}, :cut, LENGTH({path}))"

    # ==================== 结构校验 ====================

    def _sql_count_table(self) -> str:
        return f"SELECT COUNT(*) FROM {self.table}"

    def _sql_select_id_column(self) -> str:
        return f"SELECT {self.id_col} FROM {self.table} LIMIT 1"

    def _sql_select_path_column(self) -> str:
        return f"SELECT {self.path_col} FROM {self.table} LIMIT 1"

    def validate_sql(self, columns: Sequence[str]) -> str:
        """校验列是否存在：只编译执行，不返回任何行"""
        cols = ", ".join(self.quote(c) for c in columns)
        return f"SELECT {cols} FROM {self.table} WHERE 1 = 0"

    # ==================== 单行查询 ====================

    def _sql_select_by_id(self) -> str:
        return f"SELECT * FROM {self.table} WHERE {self.id_col} = :id LIMIT 1"

    def _sql_select_by_path(self) -> str:
        return f"SELECT * FROM {self.table} WHERE {self.path_col} = :path LIMIT 1"

    def _sql_select_id_by_path(self) -> str:
        return f"SELECT {self.id_col} FROM {self.table} WHERE {self.path_col} = :path LIMIT 1"

    # ==================== 关系查询 ====================

    def _children_where(self) -> str:
        return f"{self.path_col} LIKE :pattern AND {self.path_col} NOT LIKE :exclude"

    def _sql_select_children(self) -> str:
        return (
            f"SELECT * FROM {self.table} WHERE {self._children_where()} "
            f"ORDER BY {self.path_col}"
        )

    def _sql_count_children(self) -> str:
        return f"SELECT COUNT(*) FROM {self.table} WHERE {self._children_where()}"

    def _sql_select_max_child_path(self) -> str:
        return f"SELECT MAX({self.path_col}) FROM {self.table} WHERE {self._children_where()}"

    def _sql_select_descendants(self) -> str:
        return (
            f"SELECT * FROM {self.table} WHERE {self.path_col} LIKE :pattern "
            f"ORDER BY {self.path_col}"
        )

    def _sql_count_descendants(self) -> str:
        return f"SELECT COUNT(*) FROM {self.table} WHERE {self.path_col} LIKE :pattern"

    def _sql_select_ancestors(self) -> str:
        return (
            f"SELECT * FROM {self.table} WHERE {self.path_col} IN :paths "
            f"ORDER BY {self.path_col}"
        )

    # ==================== 写操作 ====================

    def _sql_update_path_by_id(self) -> str:
        return f"UPDATE {self.table} SET {self.path_col} = :path WHERE {self.id_col} = :id"

    def _sql_update_path_prefix(self) -> str:
        return (
            f"UPDATE {self.table} SET {self.path_col} = {self._prefix_rewrite_expr()} "
            f"WHERE {self.path_col} = :old_path OR {self.path_col} LIKE :pattern"
        )

    def _sql_delete_by_id(self) -> str:
        return f"DELETE FROM {self.table} WHERE {self.id_col} = :id"

    def _sql_delete_subtree(self) -> str:
        return (
            f"DELETE FROM {self.table} "
            f"WHERE {self.path_col} = :path OR {self.path_col} LIKE :pattern"
        )

    def _sql_delete_descendants(self) -> str:
        return f"DELETE FROM {self.table} WHERE {self.path_col} LIKE :pattern"

    def find_sql(self, where_sql: str, scoped: bool, order_by: Sequence[str]) -> str:
        """元数据查找语句

        Args:
            where_sql: FilterBuilder 生成的条件片段，可为空
            scoped: 是否限定在 :scope_pattern 匹配的子孙中
            order_by: 排序列，"-" 前缀表示降序；路径总是最后一个排序键
        """
        conditions = []
        if scoped:
            conditions.append(f"{self.path_col} LIKE :scope_pattern")
        if where_sql:
            conditions.append(f"({where_sql})")

        sql = f"SELECT * FROM {self.table}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        parts = [
            f"{self.quote(c[1:])} DESC" if c.startswith("-") else self.quote(c)
            for c in order_by
        ]
        parts.append(self.path_col)
        return f"{sql} ORDER BY {', '.join(parts)}"

    def insert_sql(self, columns: Sequence[str]) -> str:
        """插入语句：路径列固定在第一位，元数据列依次绑定为 :c_0, :c_1 ..."""
        names = [self.path_col] + [self.quote(c) for c in columns]
        binds = [":path"] + [f":c_{i}" for i in range(len(columns))]
        return (
            f"INSERT INTO {self.table} ({', '.join(names)}) "
            f"VALUES ({', '.join(binds)})"
        )


__all__ = ["SQLBuilder"]
