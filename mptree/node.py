"""树节点

Node 是一行记录的轻量视图：id、path 以及元数据访问。所有关系查询都是一条
基于路径列的 SQL，不在内存中维护父子指针；结构变更通过树句柄的缓存语句
和事务执行器完成。

节点状态:
    Detached（仅构造，未持久化）-> Persisted（插入后）
    -> Persisted（路径被移动改写）-> Deleted（终态，再操作抛出 StaleNode）

使用示例:
    tree = MaterializedPathTree(connection, table_name="category")
    root = tree.root

    a, b = root.add_children([{"name": "A"}, {"name": "B"}])
    first = root.add_children_at_left({"name": "最左"})[0]
    b.move_to(a)

    for node in root.traverse(lambda n, parent: print(parent.path, "->", n.path)):
        pass

    a.delete(cascade=True)
"""

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .exceptions import InvalidOperation, NotFound, StaleNode
from .log import get_logger
from .query_cache import QueryKey
from .representation import Traversal, TreeRepresentation, Visitor

if TYPE_CHECKING:
    from .tree import MaterializedPathTree

logger = get_logger("mptree.node")

ChildSpec = Union[Mapping[str, Any], "Node"]


class Node:
    """树节点视图

    Args:
        tree: 所属树句柄
        id: 主键，未持久化时为 None
        path: 物化路径，未持久化时为 None
        data: 行数据（元数据列），None 表示按需从数据库加载
    """

    def __init__(
        self,
        tree: "MaterializedPathTree",
        id: Any = None,
        path: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ):
        self.tree = tree
        self.id = id
        self.path = path
        self._data: Optional[Dict[str, Any]] = dict(data) if data is not None else None
        self._deleted = False

    # ==================== 状态 ====================

    @property
    def is_persisted(self) -> bool:
        return self.path is not None and not self._deleted

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    def _ensure_persisted(self) -> None:
        if self._deleted:
            raise StaleNode(self.id, self.path)
        if self.path is None:
            raise InvalidOperation("节点尚未持久化，请先通过 add_children 插入")

    @property
    def positions(self) -> List[int]:
        """位置序列，如 [1, 3, 2]"""
        self._ensure_persisted()
        return self.tree.codec.decode(self.path)

    @property
    def depth(self) -> int:
        """深度，根节点为 0"""
        return len(self.positions) - 1

    @property
    def is_root(self) -> bool:
        return self.depth == 0

    def is_same_node_as(self, other: "Node") -> bool:
        """是否为同一张表中的同一行"""
        return (
            isinstance(other, Node)
            and self.id is not None
            and self.id == other.id
            and self.tree.table_name == other.tree.table_name
        )

    def is_ancestor_of(self, other: "Node") -> bool:
        self._ensure_persisted()
        other._ensure_persisted()
        return self.tree.codec.is_prefix_of(self.path, other.path)

    def is_descendant_of(self, other: "Node") -> bool:
        return other.is_ancestor_of(self)

    # ==================== 元数据 ====================

    @property
    def data(self) -> Dict[str, Any]:
        """整行数据（含 id、path 列），首次访问时加载"""
        if self._data is None:
            self.refresh_data()
        return self._data

    def refresh_data(self) -> Dict[str, Any]:
        """从数据库重新加载整行数据，同时同步 path

        Raises:
            NotFound: 记录已不存在
        """
        if self._deleted:
            raise StaleNode(self.id, self.path)
        if self.id is None:
            raise InvalidOperation("节点尚未持久化，没有可加载的数据")

        row = self.tree.select_one(QueryKey.SELECT_BY_ID, {"id": self.id})
        if row is None:
            raise NotFound(f"节点不存在: {self.id!r}", node_id=self.id)
        self.path = row[self.tree.path_column_name]
        self._data = row
        return self._data

    def _sync_path(self) -> str:
        """按 id 重新读取路径

        其它 Node 对象执行的右移或移动会改写本行的路径，结构变更一律以
        id 定位行，再用最新路径计算 WHERE 条件。

        Raises:
            StaleNode: 节点已删除
            NotFound: 记录已不存在
        """
        self._ensure_persisted()
        row = self.tree.select_one(QueryKey.SELECT_BY_ID, {"id": self.id})
        if row is None:
            raise NotFound(f"节点不存在: {self.id!r}", node_id=self.id, path=self.path)
        self.path = row[self.tree.path_column_name]
        if self._data is not None:
            self._data = row
        return self.path

    def get(self, column: str, default: Any = None) -> Any:
        return self.data.get(column, default)

    def __getitem__(self, column: str) -> Any:
        return self.data[column]

    # ==================== 关系查询 ====================

    def _children_params(self, path: Optional[str] = None) -> Dict[str, str]:
        codec = self.tree.codec
        path = path or self.path
        return {
            "pattern": codec.descendant_pattern(path),
            "exclude": codec.grandchild_pattern(path),
        }

    def get_parent(self) -> Optional["Node"]:
        """父节点，根节点返回 None"""
        self._sync_path()
        parent_path = self.tree.codec.parent_path(self.path)
        if parent_path is None:
            return None
        return self.tree.get_node_by_path(parent_path)

    def get_children(self) -> List["Node"]:
        """直接子节点，按位置排序"""
        self._sync_path()
        rows = self.tree.select_rows(QueryKey.SELECT_CHILDREN, self._children_params())
        return self.tree.nodes_from_rows(rows)

    def count_children(self) -> int:
        self._sync_path()
        return int(self.tree.select_scalar(QueryKey.COUNT_CHILDREN, self._children_params()) or 0)

    def is_leaf(self) -> bool:
        return self.count_children() == 0

    def get_siblings(self, include_self: bool = False) -> List["Node"]:
        """兄弟节点，按位置排序

        Args:
            include_self: 结果中是否包含自己
        """
        self._sync_path()
        parent_path = self.tree.codec.parent_path(self.path)
        if parent_path is None:
            return [self] if include_self else []

        rows = self.tree.select_rows(QueryKey.SELECT_CHILDREN, self._children_params(parent_path))
        nodes = self.tree.nodes_from_rows(rows)
        if include_self:
            return nodes
        return [n for n in nodes if n.path != self.path]

    def get_siblings_to_the_left(self) -> List["Node"]:
        return [n for n in self.get_siblings() if n.path < self.path]

    def get_siblings_to_the_right(self) -> List["Node"]:
        return [n for n in self.get_siblings() if n.path > self.path]

    def get_descendants(self) -> TreeRepresentation:
        """所有子孙节点（不含自己），按先序排列"""
        self._sync_path()
        rows = self.tree.select_rows(
            QueryKey.SELECT_DESCENDANTS,
            {"pattern": self.tree.codec.descendant_pattern(self.path)},
        )
        return TreeRepresentation(self, self.tree.nodes_from_rows(rows))

    def count_descendants(self) -> int:
        self._sync_path()
        return int(self.tree.select_scalar(
            QueryKey.COUNT_DESCENDANTS,
            {"pattern": self.tree.codec.descendant_pattern(self.path)},
        ) or 0)

    def get_ancestors(self) -> List["Node"]:
        """所有祖先节点，从根开始"""
        self._sync_path()
        paths = self.tree.codec.ancestor_paths(self.path)
        if not paths:
            return []
        rows = self.tree.select_rows(QueryKey.SELECT_ANCESTORS, {"paths": paths})
        return self.tree.nodes_from_rows(rows)

    def traverse(self, visitor: Optional[Visitor] = None) -> Traversal:
        """子孙节点的惰性遍历

        返回的 Traversal 每次迭代都会重新查询，顺序等于路径顺序；
        visitor(node, parent) 在产出每个节点前调用。
        """
        self._ensure_persisted()
        return Traversal(self, visitor)

    def find(self, where: Any = None, order_by: Union[str, Sequence[str], None] = None) -> List["Node"]:
        """在当前节点的子孙中按元数据条件查找

        Args:
            where: 过滤条件，语法见 mptree.filters
            order_by: 排序列，默认按路径；列名前加 "-" 表示降序
        """
        self._sync_path()
        return self.tree.find(where, order_by=order_by, scope_path=self.path)

    # ==================== 插入 ====================

    def _prepare_children(self, children: Union[ChildSpec, Iterable[ChildSpec]]) -> List[Tuple[Optional["Node"], Dict[str, Any]]]:
        if isinstance(children, (Mapping, Node)):
            children = [children]

        items = []
        for child in children:
            if isinstance(child, Node):
                if child.path is not None or child._deleted:
                    raise InvalidOperation("只能插入未持久化的节点")
                items.append((child, dict(child._data or {})))
            elif isinstance(child, Mapping):
                items.append((None, dict(child)))
            else:
                raise InvalidOperation(f"子节点必须是字典或未持久化的 Node: {type(child).__name__}")

        path_col = self.tree.path_column_name
        for _, data in items:
            if path_col in data:
                raise InvalidOperation(f"路径列 {path_col} 由树维护，不能在元数据中指定")
            self.tree.validate_columns(list(data.keys()))
        return items

    def _next_position(self) -> int:
        max_path = self.tree.select_scalar(QueryKey.SELECT_MAX_CHILD_PATH, self._children_params())
        if max_path is None:
            return 1
        return self.tree.codec.last_position(max_path) + 1

    def _insert_items(self, start: int, items: List[Tuple[Optional["Node"], Dict[str, Any]]]) -> List["Node"]:
        codec = self.tree.codec
        # 先编码全部路径，溢出时在写入前失败
        paths = [codec.child_path(self.path, start + i) for i in range(len(items))]

        nodes = []
        for path, (target, data) in zip(paths, items):
            inserted = self.tree.insert_row(path, data)
            if target is not None:
                target.tree = self.tree
                target.id = inserted.id
                target.path = inserted.path
                target._data = None
                inserted = target
            nodes.append(inserted)
        return nodes

    def add_children(self, children: Union[ChildSpec, Iterable[ChildSpec]]) -> List["Node"]:
        """追加子节点到最右侧

        Args:
            children: 元数据字典、未持久化的 Node，或它们的列表

        Returns:
            新插入的节点，顺序与参数一致
        """
        self._ensure_persisted()
        items = self._prepare_children(children)
        if not items:
            return []

        def work():
            self._sync_path()
            return self._insert_items(self._next_position(), items)

        nodes = self.tree.run_in_transaction(work, multi_statement=len(items) > 1)
        logger.debug(f"在 {self.path} 下追加 {len(nodes)} 个子节点")
        return nodes

    def add_children_at_left(self, children: Union[ChildSpec, Iterable[ChildSpec]]) -> List["Node"]:
        """插入子节点到最左侧，已有子节点整体右移"""
        return self.add_children_at(1, children)

    def add_children_at(self, position: int, children: Union[ChildSpec, Iterable[ChildSpec]]) -> List["Node"]:
        """在第 position 个子节点之前插入（从 1 开始）

        position 超过现有子节点数时等同于 add_children。插入点及其右侧的
        兄弟节点（连同各自的子孙）整体右移 len(children) 位，与插入在同一事务中完成。
        """
        self._ensure_persisted()
        if isinstance(position, bool) or not isinstance(position, int) or position < 1:
            raise InvalidOperation(f"插入位置必须是从 1 开始的整数: {position!r}")

        items = self._prepare_children(children)
        if not items:
            return []

        def work():
            self._sync_path()
            siblings = self.get_children()
            if position > len(siblings):
                return self._insert_items(self._next_position(), items)

            start = self.tree.codec.last_position(siblings[position - 1].path)
            self._shift_children(siblings, start, len(items))
            return self._insert_items(start, items)

        nodes = self.tree.run_in_transaction(work)
        logger.debug(f"在 {self.path} 的第 {position} 个位置插入 {len(nodes)} 个子节点")
        return nodes

    def _shift_children(self, siblings: List["Node"], from_position: int, offset: int) -> List[Tuple["Node", str]]:
        """把位置 >= from_position 的兄弟节点右移 offset 位

        从最右侧开始处理，保证目标路径始终空闲。

        Returns:
            [(节点, 新路径)]
        """
        codec = self.tree.codec
        moves = []
        for sibling in siblings:
            current = codec.last_position(sibling.path)
            if current >= from_position:
                moves.append((sibling, codec.with_last_position(sibling.path, current + offset)))

        for sibling, new_path in reversed(moves):
            self.tree.rewrite_sibling_path(sibling.id, sibling.path, new_path)
            sibling.path = new_path
        return moves

    # ==================== 移动 ====================

    def move_to(self, new_parent: "Node", position: Optional[int] = None) -> int:
        """把当前节点及其子树移动到 new_parent 下

        Args:
            new_parent: 新父节点
            position: 在新父节点的第几个子节点之前插入（从 1 开始），None 表示追加到最右侧

        Returns:
            路径被改写的行数（自身 + 子孙）

        Raises:
            InvalidOperation: 移动根节点，或目标是自己/自己的子孙
        """
        self._ensure_persisted()
        new_parent._ensure_persisted()
        codec = self.tree.codec

        if position is not None and (isinstance(position, bool) or not isinstance(position, int) or position < 1):
            raise InvalidOperation(f"插入位置必须是从 1 开始的整数: {position!r}")

        def work():
            self._sync_path()
            new_parent._sync_path()
            if self.is_root:
                raise InvalidOperation("不能移动根节点")
            if new_parent.path == self.path or codec.is_prefix_of(self.path, new_parent.path):
                raise InvalidOperation("不能将节点移动到自身或其子孙节点下", path=self.path, target=new_parent.path)

            if position is None:
                new_path = codec.child_path(new_parent.path, new_parent._next_position())
            else:
                new_path = self._make_room_under(new_parent, position)
            return self._rewrite_subtree(new_path)

        count = self.tree.run_in_transaction(work)
        logger.debug(f"移动子树到 {self.path}，改写 {count} 行")
        return count

    def _make_room_under(self, new_parent: "Node", position: int) -> str:
        """为按位置移动腾出目标路径，返回当前节点的新路径"""
        codec = self.tree.codec
        siblings = new_parent.get_children()
        others = [n for n in siblings if n.path != self.path]
        if position > len(others):
            return codec.child_path(new_parent.path, new_parent._next_position())

        target = codec.last_position(others[position - 1].path)
        new_parent._shift_children(siblings, target, 1)
        # 自身或自身的某个祖先可能在右移的兄弟节点中
        self._sync_path()
        return codec.child_path(new_parent.path, target)

    def _rewrite_subtree(self, new_path: str) -> int:
        old_path = self.path
        count = self.tree.rewrite_subtree_path(old_path, new_path)
        self.path = new_path
        if self._data is not None:
            self._data[self.tree.path_column_name] = new_path
        return count

    # ==================== 删除 ====================

    def delete(self, cascade: bool = False) -> int:
        """删除当前节点

        Args:
            cascade: 是否连同子孙一起删除；为 False 且存在子节点时拒绝删除

        Returns:
            删除的行数
        """
        self._ensure_persisted()
        if self.is_root:
            raise InvalidOperation("不能删除根节点")

        codec = self.tree.codec

        def work():
            path = self._sync_path()
            if cascade:
                result = self.tree.execute(QueryKey.DELETE_SUBTREE, {
                    "path": path,
                    "pattern": codec.descendant_pattern(path),
                })
                return result.rowcount

            if self.count_children() > 0:
                raise InvalidOperation("节点存在子节点，请使用 cascade=True 删除", path=path)
            return self.tree.execute(QueryKey.DELETE_BY_ID, {"id": self.id}).rowcount

        count = self.tree.run_in_transaction(work, multi_statement=False)
        if count:
            self._deleted = True
        logger.debug(f"删除节点 {self.path}，共 {count} 行")
        return count

    def delete_descendants(self) -> int:
        """删除所有子孙节点，保留自身

        Returns:
            删除的行数
        """
        self._ensure_persisted()

        def work():
            pattern = self.tree.codec.descendant_pattern(self._sync_path())
            return self.tree.execute(QueryKey.DELETE_DESCENDANTS, {"pattern": pattern}).rowcount

        return self.tree.run_in_transaction(work, multi_statement=False)

    # ==================== 其它 ====================

    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return self.is_same_node_as(other)

    def __hash__(self) -> int:
        if self.id is None:
            return id(self)
        return hash((self.tree.table_name, self.id))

    def __repr__(self) -> str:
        state = "deleted" if self._deleted else ("detached" if self.path is None else "persisted")
        return f"Node(id={self.id!r}, path={self.path!r}, state={state})"


__all__ = ["Node"]
