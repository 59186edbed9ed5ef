"""物化路径树句柄

MaterializedPathTree 绑定一个 SQLAlchemy 连接和一张树表，负责：
    - 初始化时校验表和列是否存在、探测事务能力、加载或创建根节点
    - 持有路径编解码器、SQL 生成器和查询缓存
    - 为 Node 提供统一的语句执行入口，把底层 SQLAlchemyError 转换为 BackingStoreError

表结构要求（列名可配置）:
    CREATE TABLE my_tree (
        id   INTEGER PRIMARY KEY AUTOINCREMENT,
        path VARCHAR(500) NOT NULL UNIQUE,
        ...  其它元数据列
    )

路径列需要二进制（或 C）排序规则，使字符串顺序等于树的先序。

使用示例:
    from sqlalchemy import create_engine
    from mptree import MaterializedPathTree

    engine = create_engine("sqlite:///tree.db")
    with engine.connect() as conn:
        tree = MaterializedPathTree(conn, table_name="category")
        child = tree.root.add_children({"name": "电子产品"})[0]
        print(child.path)   # 00001.00001
"""

import copy
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from pydantic import ValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .codec import PathCodec
from .config import TreeSettings
from .exceptions import BackingStoreError, ConfigurationError, InvalidOperation, NotFound
from .filters import FilterBuilder
from .log import get_logger
from .node import Node
from .query_cache import CacheKey, QueryCache, QueryKey, column_key
from .sql_builder import SQLBuilder
from .transaction import TransactionRunner

logger = get_logger("mptree.tree")

T = TypeVar("T")


def _prepare_statement(sql: str, expanding: Sequence[str] = ()):
    statement = text(sql)
    if expanding:
        statement = statement.bindparams(*[bindparam(name, expanding=True) for name in expanding])
    return statement


def _resolve_dialect(connection: Any):
    if isinstance(connection, Session):
        return connection.get_bind().dialect
    return connection.dialect


class MaterializedPathTree:
    """物化路径树句柄

    Args:
        connection: SQLAlchemy Connection 或 Session，由调用方管理生命周期
        config: 树配置，默认从环境变量（MPTREE_ 前缀）读取
        table_name: 覆盖 config.table_name
        id_column_name: 覆盖 config.id_column_name
        path_column_name: 覆盖 config.path_column_name
        path_codec: 自定义路径编解码器，默认按 config 的段宽度和分隔符创建
        auto_create_root: 覆盖 config.auto_create_root

    Raises:
        ConfigurationError: 缺少连接、配置非法、表或列不存在
        NotFound: 根节点不存在且未启用自动创建
    """

    def __init__(
        self,
        connection: Any,
        config: Optional[TreeSettings] = None,
        *,
        table_name: Optional[str] = None,
        id_column_name: Optional[str] = None,
        path_column_name: Optional[str] = None,
        path_codec: Optional[PathCodec] = None,
        auto_create_root: Optional[bool] = None,
    ):
        if connection is None:
            raise ConfigurationError("缺少必需参数: connection")
        if not isinstance(connection, (Connection, Session)):
            raise ConfigurationError(
                f"connection 必须是 SQLAlchemy Connection 或 Session，而不是 {type(connection).__name__}"
            )

        self._settings = self._resolve_settings(config, {
            "table_name": table_name,
            "id_column_name": id_column_name,
            "path_column_name": path_column_name,
            "auto_create_root": auto_create_root,
        })
        self._connection = connection
        self._codec = path_codec or PathCodec(
            self._settings.path_segment_width,
            self._settings.path_separator,
        )
        self._sql_builder = SQLBuilder(
            self._settings.table_name,
            self._settings.id_column_name,
            self._settings.path_column_name,
            _resolve_dialect(connection),
        )
        self._filter_builder = FilterBuilder(quote=self._sql_builder.quote)
        self._query_cache = QueryCache()
        self._validated_columns: set = set()
        self._runner = TransactionRunner(connection)

        self._validate_schema()
        self._runner.detect()
        self._root = self._load_root()

        logger.debug(
            f"树句柄就绪: table={self.table_name}, root={self._root.path}, "
            f"transactions={self._runner.can_do_transactions}"
        )

    @staticmethod
    def _resolve_settings(config: Optional[TreeSettings], overrides: Dict[str, Any]) -> TreeSettings:
        if config is not None and not isinstance(config, TreeSettings):
            raise ConfigurationError(f"config 必须是 TreeSettings: {type(config).__name__}")

        overrides = {k: v for k, v in overrides.items() if v is not None}
        try:
            if config is None:
                return TreeSettings(**overrides)
            if overrides:
                return TreeSettings(**{**config.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"树配置不合法: {e}") from e
        return config

    # ==================== 初始化 ====================

    def _validate_schema(self) -> None:
        checks = (
            (QueryKey.COUNT_TABLE, f"表 {self.table_name} 不存在或不可访问", {}),
            (QueryKey.SELECT_ID_COLUMN, f"表 {self.table_name} 中不存在列 {self.id_column_name}",
             {"column": self.id_column_name}),
            (QueryKey.SELECT_PATH_COLUMN, f"表 {self.table_name} 中不存在列 {self.path_column_name}",
             {"column": self.path_column_name}),
        )
        for key, message, extra in checks:
            try:
                self.select_rows(key)
            except BackingStoreError as e:
                raise ConfigurationError(message, table=self.table_name, **extra) from e

    def _load_root(self) -> Node:
        root_path = self._codec.root_path()
        row = self.select_one(QueryKey.SELECT_BY_PATH, {"path": root_path})
        if row is not None:
            return self.node_from_row(row)

        if not self._settings.auto_create_root:
            raise NotFound(f"根节点 {root_path} 不存在，且未启用自动创建", path=root_path)

        logger.info(f"表 {self.table_name} 中没有根节点，自动创建 {root_path}")
        return self.run_in_transaction(lambda: self.insert_row(root_path, {}), multi_statement=False)

    # ==================== 属性 ====================

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def settings(self) -> TreeSettings:
        return self._settings

    @property
    def codec(self) -> PathCodec:
        return self._codec

    @property
    def query_cache(self) -> QueryCache:
        return self._query_cache

    @property
    def transaction_runner(self) -> TransactionRunner:
        return self._runner

    @property
    def can_do_transactions(self) -> bool:
        return self._runner.can_do_transactions

    @property
    def table_name(self) -> str:
        return self._settings.table_name

    @property
    def id_column_name(self) -> str:
        return self._settings.id_column_name

    @property
    def path_column_name(self) -> str:
        return self._settings.path_column_name

    @property
    def dialect_name(self) -> str:
        return self._sql_builder.dialect_name

    @property
    def root(self) -> Node:
        """根节点"""
        return self._root

    # ==================== 语句执行 ====================

    def statement(self, key: CacheKey):
        """逻辑键对应的语句句柄，SQL 文本和句柄都按需生成并缓存"""
        sql = self._query_cache.get_sql(key, lambda: self._sql_builder.build(key))
        return self._prepared(sql, self._sql_builder.expanding_params(key))

    def _prepared(self, sql: str, expanding: Sequence[str] = ()):
        return self._query_cache.get_statement(sql, lambda s: _prepare_statement(s, expanding))

    def _execute(self, statement, params: Optional[Mapping[str, Any]] = None):
        try:
            return self._connection.execute(statement, dict(params or {}))
        except SQLAlchemyError as e:
            raise BackingStoreError(f"数据库操作失败: {e}", original_error=e) from e

    def execute(self, key: CacheKey, params: Optional[Mapping[str, Any]] = None):
        """执行逻辑键对应的语句，返回 SQLAlchemy Result

        不负责事务边界，写操作应在 run_in_transaction 中调用。
        """
        return self._execute(self.statement(key), params)

    def _read(self, fetch: Callable[[], T]) -> T:
        """执行只读查询

        调用方没有开启事务时，查询自动开启的事务在读取后立即回滚，
        避免连接长时间停留在事务中。
        """
        owns_transaction = not self._connection.in_transaction()
        try:
            return fetch()
        finally:
            if owns_transaction and self._connection.in_transaction():
                self._connection.rollback()

    def select_rows(self, key: CacheKey, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._read(lambda: [dict(r) for r in self.execute(key, params).mappings().all()])

    def select_one(self, key: CacheKey, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        def fetch():
            row = self.execute(key, params).mappings().first()
            return dict(row) if row is not None else None
        return self._read(fetch)

    def select_scalar(self, key: CacheKey, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self._read(lambda: self.execute(key, params).scalar())

    def run_in_transaction(self, work: Callable[[], T], multi_statement: bool = True) -> T:
        """在事务中执行工作单元，见 TransactionRunner.run"""
        return self._runner.run(work, multi_statement=multi_statement)

    # ==================== 行与节点 ====================

    def node_from_row(self, row: Mapping[str, Any]) -> Node:
        """由整行数据构造节点，路径不合法时抛出 MalformedPath"""
        path = row[self.path_column_name]
        self._codec.decode(path)
        return Node(self, row[self.id_column_name], path, data=row)

    def nodes_from_rows(self, rows: Iterable[Mapping[str, Any]]) -> List[Node]:
        return [self.node_from_row(row) for row in rows]

    def get_node_by_id(self, node_id: Any) -> Node:
        row = self.select_one(QueryKey.SELECT_BY_ID, {"id": node_id})
        if row is None:
            raise NotFound(f"节点不存在: {node_id!r}", node_id=node_id)
        return self.node_from_row(row)

    def get_node_by_path(self, path: str) -> Node:
        self._codec.decode(path)
        row = self.select_one(QueryKey.SELECT_BY_PATH, {"path": path})
        if row is None:
            raise NotFound(f"路径不存在: {path}", path=path)
        return self.node_from_row(row)

    def validate_columns(self, columns: Sequence[str]) -> None:
        """校验元数据列是否存在，每个列集合只校验一次

        Raises:
            InvalidOperation: 存在未知列
        """
        columns = tuple(columns)
        if not columns or columns in self._validated_columns:
            return

        sql = self._query_cache.get_sql(
            column_key("VALIDATE", columns),
            lambda: self._sql_builder.validate_sql(columns),
        )
        try:
            self._read(lambda: self._execute(self._prepared(sql)).fetchall())
        except BackingStoreError as e:
            raise InvalidOperation(
                f"表 {self.table_name} 中存在未知列: {', '.join(columns)}",
                columns=list(columns),
            ) from e
        self._validated_columns.add(columns)

    def insert_row(self, path: str, data: Mapping[str, Any]) -> Node:
        """插入一行并返回对应节点

        主键由数据库生成时，插入后按路径回查 id。
        """
        columns = list(data.keys())
        sql = self._query_cache.get_sql(
            column_key("INSERT", columns),
            lambda: self._sql_builder.insert_sql(columns),
        )
        params = {"path": path}
        for i, column in enumerate(columns):
            params[f"c_{i}"] = data[column]
        self._execute(self._prepared(sql), params)

        node_id = data.get(self.id_column_name)
        if node_id is None:
            node_id = self.select_scalar(QueryKey.SELECT_ID_BY_PATH, {"path": path})
        return Node(self, node_id, path)

    def rewrite_subtree_path(self, old_path: str, new_path: str) -> int:
        """把 old_path 及其所有子孙的路径前缀替换为 new_path

        Returns:
            改写的行数
        """
        result = self.execute(QueryKey.UPDATE_PATH_PREFIX, {
            "new_prefix": new_path,
            "cut": len(old_path) + 1,
            "old_path": old_path,
            "pattern": self._codec.descendant_pattern(old_path),
        })
        return result.rowcount

    def rewrite_sibling_path(self, node_id: Any, old_path: str, new_path: str) -> int:
        """按 id 改写一个节点的路径，再改写其子孙的前缀

        Returns:
            改写的行数
        """
        count = self.execute(QueryKey.UPDATE_PATH_BY_ID, {"path": new_path, "id": node_id}).rowcount
        return count + self.rewrite_subtree_path(old_path, new_path)

    # ==================== 查找 ====================

    @staticmethod
    def _order_columns(order_by: Union[str, Sequence[str], None]) -> Tuple[str, ...]:
        if order_by is None:
            return ()
        columns = (order_by,) if isinstance(order_by, str) else tuple(order_by)
        for column in columns:
            if not isinstance(column, str) or not column.lstrip("-"):
                raise InvalidOperation(f"排序列不合法: {column!r}")
        return columns

    def find(
        self,
        where: Any = None,
        order_by: Union[str, Sequence[str], None] = None,
        scope_path: Optional[str] = None,
    ) -> List[Node]:
        """按元数据条件查找节点

        Args:
            where: 过滤条件，语法见 mptree.filters
            order_by: 排序列，默认按路径；列名前加 "-" 表示降序
            scope_path: 只在该路径的子孙中查找（不含自身）

        Returns:
            匹配的节点
        """
        clause = self._filter_builder.build(where)
        order_columns = self._order_columns(order_by)
        scoped = scope_path is not None

        # 条件片段只含参数占位符，同一结构的查找共用一条 SQL
        key = column_key(f"FIND:{'scoped' if scoped else 'all'}", order_columns) + f"|{clause.sql}"
        sql = self._query_cache.get_sql(
            key,
            lambda: self._sql_builder.find_sql(clause.sql, scoped, order_columns),
        )

        params: Dict[str, Any] = dict(clause.params)
        if scoped:
            params["scope_pattern"] = self._codec.descendant_pattern(scope_path)

        statement = self._prepared(sql, clause.expanding)
        rows = self._read(lambda: [dict(r) for r in self._execute(statement, params).mappings().all()])
        return self.nodes_from_rows(rows)

    # ==================== 克隆 ====================

    def clone(self) -> "MaterializedPathTree":
        """克隆句柄

        名称配置、路径编解码器和 SQL 文本缓存按值复制；
        连接和语句句柄缓存与原句柄共享。
        """
        other = copy.copy(self)
        other._settings = self._settings.model_copy(deep=True)
        other._codec = copy.deepcopy(self._codec)
        other._sql_builder = copy.copy(self._sql_builder)
        other._filter_builder = FilterBuilder(quote=other._sql_builder.quote)
        other._query_cache = self._query_cache.clone()
        other._validated_columns = set(self._validated_columns)
        other._runner = TransactionRunner(self._connection, self._runner.can_do_transactions)
        other._root = Node(other, self._root.id, self._root.path)
        return other

    def __repr__(self) -> str:
        return f"MaterializedPathTree(table={self.table_name!r}, root={self._root.path!r})"


__all__ = ["MaterializedPathTree"]
