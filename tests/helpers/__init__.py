"""测试辅助工具模块

提供测试专用的辅助函数，避免在核心代码中添加测试专用方法。
"""

from .tree_helpers import (
    tree_metadata,
    tree_table,
    fetch_paths,
    fetch_rows,
    count_rows,
    build_sample_tree,
)
from .statement_helpers import (
    StatementRecorder,
)

__all__ = [
    # 树表辅助
    'tree_metadata',
    'tree_table',
    'fetch_paths',
    'fetch_rows',
    'count_rows',
    'build_sample_tree',
    # 语句记录
    'StatementRecorder',
]
