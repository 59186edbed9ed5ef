"""节点查询测试

测试 Node 的关系查询：
1. 父节点 / 子节点 / 兄弟节点
2. 子孙 / 祖先
3. 计数与判断
4. 元数据访问
"""

import pytest
from sqlalchemy import text

from mptree import Node, TreeRepresentation
from mptree.exceptions import InvalidOperation, NotFound

from tests.helpers import build_sample_tree


@pytest.fixture
def nodes(tree):
    return build_sample_tree(tree)


def names(node_list):
    return [n.data["name"] for n in node_list]


class TestPositions:
    """位置与深度测试"""

    def test_paths(self, nodes):
        assert nodes["A"].path == "00001.00001"
        assert nodes["C"].path == "00001.00003"
        assert nodes["A1a"].path == "00001.00001.00001.00001"

    def test_positions_and_depth(self, nodes):
        assert nodes["root"].positions == [1]
        assert nodes["A1a"].positions == [1, 1, 1, 1]
        assert nodes["B1"].depth == 2
        assert not nodes["B1"].is_root


class TestParentAndChildren:
    """父子关系测试"""

    def test_get_parent(self, nodes):
        assert nodes["A1"].get_parent() == nodes["A"]
        assert nodes["A"].get_parent() == nodes["root"]

    def test_root_has_no_parent(self, nodes):
        assert nodes["root"].get_parent() is None

    def test_get_children_in_order(self, nodes):
        """测试子节点按位置排序且不含孙节点"""
        assert names(nodes["root"].get_children()) == ["A", "B", "C"]
        assert names(nodes["A"].get_children()) == ["A1", "A2"]

    def test_leaf_has_no_children(self, nodes):
        assert nodes["C"].get_children() == []
        assert nodes["C"].is_leaf()
        assert not nodes["A"].is_leaf()

    def test_count_children(self, nodes):
        assert nodes["root"].count_children() == 3
        assert nodes["A1"].count_children() == 1
        assert nodes["A2"].count_children() == 0


class TestSiblings:
    """兄弟节点测试"""

    def test_get_siblings(self, nodes):
        assert names(nodes["B"].get_siblings()) == ["A", "C"]
        assert names(nodes["B"].get_siblings(include_self=True)) == ["A", "B", "C"]

    def test_root_siblings(self, nodes):
        assert nodes["root"].get_siblings() == []
        assert nodes["root"].get_siblings(include_self=True) == [nodes["root"]]

    def test_left_and_right(self, nodes):
        assert names(nodes["B"].get_siblings_to_the_left()) == ["A"]
        assert names(nodes["B"].get_siblings_to_the_right()) == ["C"]
        assert nodes["A"].get_siblings_to_the_left() == []
        assert nodes["C"].get_siblings_to_the_right() == []


class TestDescendantsAndAncestors:
    """子孙与祖先测试"""

    def test_get_descendants_preorder(self, nodes):
        """测试子孙按先序排列"""
        descendants = nodes["root"].get_descendants()
        assert isinstance(descendants, TreeRepresentation)
        assert names(descendants) == ["A", "A1", "A1a", "A2", "B", "B1", "C"]
        assert descendants.num_nodes == 7
        assert descendants.has_nodes

    def test_leaf_descendants_empty(self, nodes):
        descendants = nodes["C"].get_descendants()
        assert descendants.num_nodes == 0
        assert not descendants

    def test_count_descendants(self, nodes):
        assert nodes["root"].count_descendants() == 7
        assert nodes["A"].count_descendants() == 3
        assert nodes["C"].count_descendants() == 0

    def test_get_ancestors(self, nodes):
        assert names(nodes["A1a"].get_ancestors()[1:]) == ["A", "A1"]
        assert nodes["A1a"].get_ancestors()[0] == nodes["root"]

    def test_root_has_no_ancestors(self, nodes):
        assert nodes["root"].get_ancestors() == []

    def test_ancestor_descendant_checks(self, nodes):
        assert nodes["A"].is_ancestor_of(nodes["A1a"])
        assert nodes["A1a"].is_descendant_of(nodes["root"])
        assert not nodes["A"].is_ancestor_of(nodes["B1"])
        assert not nodes["A"].is_ancestor_of(nodes["A"])

    def test_nested_representation(self, nodes):
        nested = nodes["A"].get_descendants().to_nested()
        assert [n["name"] for n in nested] == ["A1", "A2"]
        assert [n["name"] for n in nested[0]["children"]] == ["A1a"]


class TestNodeData:
    """元数据访问测试"""

    def test_data_loaded_lazily(self, tree):
        child = tree.root.add_children({"name": "A", "sort_key": 7})[0]
        assert child.data["name"] == "A"
        assert child["sort_key"] == 7
        assert child.get("missing", "default") == "default"
        assert child.data["path"] == child.path

    def test_refresh_data(self, tree, db_connection):
        child = tree.root.add_children({"name": "A"})[0]
        assert child.data["name"] == "A"

        db_connection.execute(text("UPDATE my_tree SET name = 'renamed' WHERE id = :id"), {"id": child.id})
        db_connection.commit()

        assert child.data["name"] == "A"
        assert child.refresh_data()["name"] == "renamed"

    def test_refresh_missing_row(self, tree, db_connection):
        child = tree.root.add_children({"name": "A"})[0]
        db_connection.execute(text("DELETE FROM my_tree WHERE id = :id"), {"id": child.id})
        db_connection.commit()

        with pytest.raises(NotFound):
            child.refresh_data()

    def test_same_node(self, tree):
        child = tree.root.add_children({"name": "A"})[0]
        again = tree.get_node_by_id(child.id)
        assert child.is_same_node_as(again)
        assert child == again
        assert hash(child) == hash(again)
        assert not child.is_same_node_as(tree.root)


class TestDetachedNode:
    """未持久化节点测试"""

    def test_detached_operations_rejected(self, tree):
        detached = Node(tree, data={"name": "X"})
        assert not detached.is_persisted
        with pytest.raises(InvalidOperation):
            detached.get_children()
        with pytest.raises(InvalidOperation):
            detached.refresh_data()

    def test_detached_node_becomes_persisted(self, tree):
        """测试插入后未持久化节点变为已持久化"""
        detached = Node(tree, data={"name": "X"})
        inserted = tree.root.add_children(detached)

        assert inserted == [detached]
        assert detached.is_persisted
        assert detached.path == "00001.00001"
        assert detached.data["name"] == "X"

    def test_persisted_node_cannot_be_inserted_again(self, tree):
        child = tree.root.add_children({"name": "A"})[0]
        with pytest.raises(InvalidOperation):
            tree.root.add_children(child)
