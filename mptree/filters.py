"""元数据过滤条件构建

把结构化的过滤条件转换为 SQL WHERE 片段和绑定参数，供 find 系列操作使用。
树核心只负责路径范围限定，元数据谓词全部由这里生成。

条件语法:
    {"name": "foo"}                         name = 'foo'
    {"deleted_at": None}                    deleted_at IS NULL
    {"status": ["a", "b"]}                  status IN ('a', 'b')
    {"age": {">=": 18, "<": 60}}            age >= 18 AND age < 60
    {"title": {"like": "%树%"}}              title LIKE '%树%'
    {"owner": {"!=": None}}                 owner IS NOT NULL
    {"-or": [{"a": 1}, {"b": 2}]}           (a = 1 OR b = 2)
    [{"a": 1}, {"b": 2}]                    顶层列表表示 OR

使用示例:
    builder = FilterBuilder(quote=str)
    clause = builder.build({"name": "foo", "age": {">": 3}})
    clause.sql      # "name = :f_0 AND age > :f_1"
    clause.params   # {"f_0": "foo", "f_1": 3}
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import InvalidOperation


@dataclass
class FilterClause:
    """过滤条件构建结果

    属性:
        sql: WHERE 片段（不含 WHERE 关键字），无条件时为空字符串
        params: 绑定参数
        expanding: 需要按列表展开的参数名（IN 条件）
    """
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)
    expanding: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.sql


class _FilterState:
    def __init__(self, prefix: str):
        self.prefix = prefix
        self.params: Dict[str, Any] = {}
        self.expanding: List[str] = []

    def bind(self, value: Any, expanding: bool = False) -> str:
        name = f"{self.prefix}{len(self.params)}"
        self.params[name] = value
        if expanding:
            self.expanding.append(name)
        return f":{name}"


class FilterBuilder:
    """过滤条件构建器

    Args:
        quote: 列名引号函数，通常为方言的 identifier_preparer.quote
        param_prefix: 生成的绑定参数名前缀，避免与路径参数冲突
    """

    COMPARISON_OPERATORS: Dict[str, str] = {
        "=": "=",
        "==": "=",
        "!=": "<>",
        "<>": "<>",
        ">": ">",
        ">=": ">=",
        "<": "<",
        "<=": "<=",
        "like": "LIKE",
        "not like": "NOT LIKE",
    }

    def __init__(self, quote: Optional[Callable[[str], str]] = None, param_prefix: str = "f_"):
        self._quote = quote or (lambda name: name)
        self.param_prefix = param_prefix

    def build(self, where: Any) -> FilterClause:
        """构建过滤条件

        Args:
            where: 字典或字典列表，None / 空表示不过滤

        Raises:
            InvalidOperation: 条件结构或运算符不合法
        """
        if not where:
            return FilterClause(sql="")

        state = _FilterState(self.param_prefix)
        sql = self._render(where, state)
        return FilterClause(sql=sql, params=state.params, expanding=tuple(state.expanding))

    # ==================== 渲染 ====================

    def _render(self, predicate: Any, state: _FilterState) -> str:
        if isinstance(predicate, dict):
            parts = []
            for key, value in predicate.items():
                if not isinstance(key, str):
                    raise InvalidOperation(f"过滤条件的列名必须是字符串: {key!r}")
                logic = key.lower()
                if logic in ("-or", "-and"):
                    parts.append(self._render_group(value, state, "OR" if logic == "-or" else "AND"))
                else:
                    parts.append(self._render_column(key, value, state))
            if not parts:
                raise InvalidOperation("过滤条件不能为空字典")
            return " AND ".join(parts)

        if isinstance(predicate, (list, tuple)):
            return self._render_group(predicate, state, "OR")

        raise InvalidOperation(f"不支持的过滤条件类型: {type(predicate).__name__}")

    def _render_group(self, predicates: Any, state: _FilterState, joiner: str) -> str:
        if isinstance(predicates, dict):
            predicates = [{k: v} for k, v in predicates.items()]
        if not isinstance(predicates, (list, tuple)) or not predicates:
            raise InvalidOperation(f"{joiner} 条件必须是非空列表")
        parts = [self._render(p, state) for p in predicates]
        return "(" + f" {joiner} ".join(f"({p})" for p in parts) + ")"

    def _render_column(self, column: str, value: Any, state: _FilterState) -> str:
        col = self._quote(column)

        if value is None:
            return f"{col} IS NULL"

        if isinstance(value, (list, tuple, set, frozenset)):
            return self._render_in(col, list(value), state, negate=False)

        if isinstance(value, dict):
            if not value:
                raise InvalidOperation(f"列 {column} 的运算条件不能为空")
            parts = [self._render_operator(col, op, v, state) for op, v in value.items()]
            return " AND ".join(parts)

        return f"{col} = {state.bind(value)}"

    def _render_operator(self, col: str, op: str, value: Any, state: _FilterState) -> str:
        op_key = op.lower().strip() if isinstance(op, str) else op

        if op_key in ("in", "not in"):
            if not isinstance(value, (list, tuple, set, frozenset)):
                raise InvalidOperation(f"{op} 条件需要列表: {value!r}")
            return self._render_in(col, list(value), state, negate=op_key == "not in")

        if op_key not in self.COMPARISON_OPERATORS:
            raise InvalidOperation(f"不支持的运算符: {op!r}")

        sql_op = self.COMPARISON_OPERATORS[op_key]
        if value is None:
            if sql_op == "=":
                return f"{col} IS NULL"
            if sql_op == "<>":
                return f"{col} IS NOT NULL"
            raise InvalidOperation(f"运算符 {op!r} 不能与 None 比较")

        return f"{col} {sql_op} {state.bind(value)}"

    def _render_in(self, col: str, values: list, state: _FilterState, negate: bool) -> str:
        if not values:
            # 空集合：IN 恒假，NOT IN 恒真
            return "1 = 1" if negate else "1 = 0"
        keyword = "NOT IN" if negate else "IN"
        return f"{col} {keyword} {state.bind(values, expanding=True)}"


__all__ = ["FilterBuilder", "FilterClause"]
