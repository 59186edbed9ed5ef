"""树形数据工具函数

在内存中处理按物化路径排列的行数据，不访问数据库。

使用示例:
    from mptree.codec import PathCodec
    from mptree.tree_utils import build_nested, flatten_nested

    codec = PathCodec()
    rows = [
        {"path": "00001", "name": "根"},
        {"path": "00001.00001", "name": "A"},
        {"path": "00001.00001.00001", "name": "A-1"},
        {"path": "00001.00002", "name": "B"},
    ]
    tree = build_nested(rows, codec)
    # [{"path": "00001", "name": "根", "children": [
    #     {"path": "00001.00001", "name": "A", "children": [...]},
    #     {"path": "00001.00002", "name": "B", "children": []},
    # ]}]
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from .codec import PathCodec


def build_nested(
    rows: Iterable[Dict[str, Any]],
    codec: PathCodec,
    path_field: str = "path",
    children_field: str = "children",
) -> List[Dict[str, Any]]:
    """将按路径排列的扁平行构建为嵌套结构

    父节点通过路径前缀推导：每一行挂到已出现的、最长的祖先路径下，
    没有祖先出现在 rows 中的行作为顶层节点。输入无需预先排序。

    Args:
        rows: 行字典，必须包含 path_field
        codec: 路径编解码器
        path_field: 路径字段名
        children_field: 输出中子节点列表的字段名

    Returns:
        嵌套结构列表，同级按路径顺序排列
    """
    ordered = sorted((dict(r) for r in rows), key=lambda r: r[path_field])

    roots: List[Dict[str, Any]] = []
    # 当前祖先链，先序遍历时栈顶总是最近的候选父节点
    stack: List[Dict[str, Any]] = []

    for item in ordered:
        item[children_field] = []
        path = item[path_field]
        while stack and not codec.is_prefix_of(stack[-1][path_field], path):
            stack.pop()
        if stack:
            stack[-1][children_field].append(item)
        else:
            roots.append(item)
        stack.append(item)

    return roots


def flatten_nested(
    tree: List[Dict[str, Any]],
    children_field: str = "children",
    depth_field: Optional[str] = None,
    _depth: int = 0,
) -> List[Dict[str, Any]]:
    """将嵌套结构按先序展平，结果中去掉子节点字段

    Args:
        tree: 嵌套结构列表
        children_field: 子节点列表字段名
        depth_field: 如果指定，把相对深度（顶层为 0）写入该字段
    """
    result: List[Dict[str, Any]] = []
    for node in tree:
        item = {k: v for k, v in node.items() if k != children_field}
        if depth_field:
            item[depth_field] = _depth
        result.append(item)
        result.extend(flatten_nested(
            node.get(children_field) or [],
            children_field=children_field,
            depth_field=depth_field,
            _depth=_depth + 1,
        ))
    return result


def find_in_nested(
    tree: List[Dict[str, Any]],
    predicate: Callable[[Dict[str, Any]], bool],
    children_field: str = "children",
) -> Optional[Dict[str, Any]]:
    """按先序查找第一个满足条件的节点，未找到返回 None"""
    for node in tree:
        if predicate(node):
            return node
        found = find_in_nested(node.get(children_field) or [], predicate, children_field)
        if found is not None:
            return found
    return None


def nested_depth(tree: List[Dict[str, Any]], children_field: str = "children") -> int:
    """嵌套结构的层数，空列表为 0"""
    if not tree:
        return 0
    return 1 + max(nested_depth(node.get(children_field) or [], children_field) for node in tree)


__all__ = [
    "build_nested",
    "flatten_nested",
    "find_in_nested",
    "nested_depth",
]
