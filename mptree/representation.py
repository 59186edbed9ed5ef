"""子孙节点结果集

TreeRepresentation 保存一次子孙查询的结果（按路径排序，即先序），
提供遍历与嵌套结构转换。Traversal 是可重复迭代的惰性遍历：每次迭代重新查询。
"""

from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Tuple

from .tree_utils import build_nested

if TYPE_CHECKING:
    from .node import Node


Visitor = Callable[["Node", "Node"], Any]


class TreeRepresentation:
    """一个节点的子孙集合

    Args:
        start: 起始节点（不包含在结果中）
        nodes: 按路径排序的子孙节点
    """

    def __init__(self, start: "Node", nodes: List["Node"]):
        self.start = start
        self._nodes = list(nodes)

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    @property
    def has_nodes(self) -> bool:
        return bool(self._nodes)

    @property
    def nodes(self) -> List["Node"]:
        return list(self._nodes)

    def __iter__(self) -> Iterator["Node"]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index):
        return self._nodes[index]

    def __bool__(self) -> bool:
        return bool(self._nodes)

    def pairs(self) -> Iterator[Tuple["Node", "Node"]]:
        """按先序产出 (节点, 父节点)

        父节点取结果集中最近的祖先，直接子节点的父节点为起始节点。
        """
        codec = self.start.tree.codec
        stack: List["Node"] = [self.start]
        for node in self._nodes:
            while len(stack) > 1 and not codec.is_prefix_of(stack[-1].path, node.path):
                stack.pop()
            yield node, stack[-1]
            stack.append(node)

    def walk(self, visitor: Optional[Visitor] = None) -> Iterator["Node"]:
        """按先序产出节点，并对每个节点调用 visitor(node, parent)"""
        for node, parent in self.pairs():
            if visitor is not None:
                visitor(node, parent)
            yield node

    def traverse(self, visitor: Visitor) -> int:
        """对每个节点调用 visitor(node, parent)

        Returns:
            访问的节点数
        """
        count = 0
        for _ in self.walk(visitor):
            count += 1
        return count

    def to_nested(self, children_field: str = "children") -> List[dict]:
        """转换为嵌套字典结构，每个字典是节点的完整行数据"""
        tree = self.start.tree
        rows = [dict(node.data) for node in self._nodes]
        return build_nested(rows, tree.codec, path_field=tree.path_column_name, children_field=children_field)

    def __repr__(self) -> str:
        return f"TreeRepresentation(start={self.start.path!r}, num_nodes={len(self._nodes)})"


class Traversal:
    """可重复的惰性子孙遍历

    迭代前不执行查询；每次迭代都重新查询，结果顺序等于路径顺序（先序）。

    使用示例:
        seen = []
        for node in root.traverse(lambda n, parent: seen.append((n.path, parent.path))):
            ...
    """

    def __init__(self, start: "Node", visitor: Optional[Visitor] = None):
        self.start = start
        self.visitor = visitor

    def __iter__(self) -> Iterator["Node"]:
        return self.start.get_descendants().walk(self.visitor)

    def run(self) -> int:
        """立即执行一次完整遍历，返回访问的节点数"""
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"Traversal(start={self.start.path!r})"


__all__ = ["TreeRepresentation", "Traversal", "Visitor"]
