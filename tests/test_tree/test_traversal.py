"""遍历测试

测试 traverse 与 TreeRepresentation：
1. 先序遍历与父节点推导
2. 惰性、可重复执行
3. 嵌套结构转换
"""

import pytest

from mptree import Traversal

from tests.helpers import build_sample_tree


@pytest.fixture
def nodes(tree):
    return build_sample_tree(tree)


class TestTraverse:
    """traverse 测试"""

    def test_visit_order_and_parents(self, nodes):
        """测试访问顺序为先序，且每个节点的父节点正确"""
        visited = []
        traversal = nodes["root"].traverse(
            lambda node, parent: visited.append((node.data["name"], parent.data["name"]))
        )
        assert traversal.run() == 7
        assert visited == [
            ("A", None),
            ("A1", "A"),
            ("A1a", "A1"),
            ("A2", "A"),
            ("B", None),
            ("B1", "B"),
            ("C", None),
        ]

    def test_parent_of_direct_children_is_start(self, nodes):
        parents = []
        for _ in nodes["A"].traverse(lambda node, parent: parents.append(parent)):
            pass
        assert parents[0] is nodes["A"]

    def test_lazy_until_iterated(self, nodes):
        """测试迭代前不执行查询"""
        visited = []
        traversal = nodes["root"].traverse(lambda node, parent: visited.append(node))
        assert isinstance(traversal, Traversal)
        assert visited == []

    def test_restartable(self, nodes):
        """测试可以重复遍历，且每次重新查询"""
        traversal = nodes["B"].traverse()
        first = [n.data["name"] for n in traversal]
        nodes["B"].add_children({"name": "B2"})
        second = [n.data["name"] for n in traversal]

        assert first == ["B1"]
        assert second == ["B1", "B2"]

    def test_leaf_traversal(self, nodes):
        assert list(nodes["C"].traverse()) == []

    def test_visitor_exception_propagates(self, nodes):
        def visitor(node, parent):
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError):
            nodes["root"].traverse(visitor).run()


class TestRepresentation:
    """TreeRepresentation 测试"""

    def test_pairs(self, nodes):
        pairs = list(nodes["A"].get_descendants().pairs())
        assert [(n.data["name"], p.data["name"]) for n, p in pairs] == [
            ("A1", "A"),
            ("A1a", "A1"),
            ("A2", "A"),
        ]

    def test_traverse_count(self, nodes):
        seen = []
        count = nodes["root"].get_descendants().traverse(lambda node, parent: seen.append(node.path))
        assert count == 7
        assert seen == sorted(seen)

    def test_indexing(self, nodes):
        descendants = nodes["root"].get_descendants()
        assert descendants[0].data["name"] == "A"
        assert len(descendants) == 7
        assert descendants.nodes is not descendants.nodes

    def test_to_nested(self, nodes):
        nested = nodes["root"].get_descendants().to_nested()
        assert [n["name"] for n in nested] == ["A", "B", "C"]
        assert nested[0]["children"][0]["children"][0]["name"] == "A1a"
        assert nested[2]["children"] == []
