"""路径编解码

物化路径（Materialized Path）编码说明：
    - 位置序列：每层一个从 1 开始的整数，根节点为 [1]
    - 每个位置编码为固定宽度、左侧补零的十进制段，段之间用分隔符连接
    - 例如宽度为 5 时: [1] -> "00001"，[1, 3, 12] -> "00001.00003.00012"

排序约束：
    - 分隔符的字典序小于所有数字，因此父路径总是子路径的严格前缀且排在其前
    - 同级段宽度固定，字符串顺序等于数值顺序
    - 数据库的 ORDER BY / LIKE 前缀匹配直接作用于路径列，
      所以字符串顺序必须等于树的先序（文档）顺序

使用示例:
    from mptree.codec import PathCodec

    codec = PathCodec(segment_width=5)
    path = codec.encode([1, 2, 3])       # "00001.00002.00003"
    codec.decode(path)                   # [1, 2, 3]
    codec.is_prefix_of("00001", path)    # True
"""

from typing import List, Optional, Sequence

from .exceptions import ConfigurationError, MalformedPath, PathOverflow


class PathCodec:
    """位置序列与路径字符串之间的编解码器

    不做任何 I/O，可以安全地深拷贝到克隆出来的树句柄中。
    """

    DEFAULT_SEGMENT_WIDTH: int = 5
    DEFAULT_SEPARATOR: str = "."

    def __init__(self, segment_width: int = DEFAULT_SEGMENT_WIDTH, separator: str = DEFAULT_SEPARATOR):
        """初始化编解码器

        Args:
            segment_width: 每段的位数
            separator: 段分隔符

        Raises:
            ConfigurationError: 宽度或分隔符不满足排序约束
        """
        if not isinstance(segment_width, int) or segment_width < 1:
            raise ConfigurationError(f"路径段宽度必须是正整数: {segment_width!r}")
        if not isinstance(separator, str) or len(separator) != 1:
            raise ConfigurationError(f"分隔符必须是单个字符: {separator!r}")
        if separator >= "0":
            raise ConfigurationError(f"分隔符的字典序必须小于 '0': {separator!r}")
        if separator in ("%", "_"):
            raise ConfigurationError(f"分隔符不能是 LIKE 通配符: {separator!r}")

        self.segment_width = segment_width
        self.separator = separator

    @property
    def max_position(self) -> int:
        """单层可容纳的最大位置"""
        return 10 ** self.segment_width - 1

    # ==================== 编解码 ====================

    def encode_position(self, position: int) -> str:
        """编码单个位置

        Raises:
            PathOverflow: 位置超出段宽度
            MalformedPath: 位置不是正整数
        """
        if isinstance(position, bool) or not isinstance(position, int) or position < 1:
            raise MalformedPath(position, "位置必须是从 1 开始的整数")
        if position > self.max_position:
            raise PathOverflow(
                f"位置 {position} 超出路径段宽度 {self.segment_width} 的容量 {self.max_position}",
                position=position,
            )
        return str(position).zfill(self.segment_width)

    def encode(self, positions: Sequence[int]) -> str:
        """将位置序列编码为路径字符串

        Args:
            positions: 位置序列，如 [1, 2, 3]

        Returns:
            路径字符串
        """
        if not positions:
            raise MalformedPath(positions, "位置序列不能为空")
        return self.separator.join(self.encode_position(p) for p in positions)

    def decode(self, path: str) -> List[int]:
        """将路径字符串解码为位置序列

        只接受 encode 能够产生的字符串，其它一律视为数据损坏。

        Raises:
            MalformedPath: 路径格式不正确
        """
        if not isinstance(path, str) or not path:
            raise MalformedPath(path, "路径必须是非空字符串")

        positions = []
        for segment in path.split(self.separator):
            if len(segment) != self.segment_width:
                raise MalformedPath(path, f"路径段 {segment!r} 宽度不是 {self.segment_width}")
            if not (segment.isascii() and segment.isdigit()):
                raise MalformedPath(path, f"路径段 {segment!r} 含有非数字字符")
            position = int(segment)
            if position < 1:
                raise MalformedPath(path, "位置必须从 1 开始")
            positions.append(position)
        return positions

    def is_valid(self, path: str) -> bool:
        """判断路径是否合法"""
        try:
            self.decode(path)
        except MalformedPath:
            return False
        return True

    # ==================== 比较 ====================

    def is_prefix_of(self, a: str, b: str) -> bool:
        """判断 a 对应的节点是否为 b 对应节点的严格祖先"""
        return b.startswith(a + self.separator)

    @staticmethod
    def compare(a: str, b: str) -> int:
        """按码点比较两个路径，与数据库 ORDER BY 一致

        Returns:
            -1 / 0 / 1
        """
        return (a > b) - (a < b)

    # ==================== 路径运算 ====================

    def root_path(self) -> str:
        """根节点路径"""
        return self.encode([1])

    def depth(self, path: str) -> int:
        """节点深度，根节点为 0"""
        return len(self.decode(path)) - 1

    def parent_path(self, path: str) -> Optional[str]:
        """父节点路径，根节点返回 None"""
        positions = self.decode(path)
        if len(positions) == 1:
            return None
        return self.encode(positions[:-1])

    def child_path(self, path: str, position: int) -> str:
        """第 position 个子节点的路径"""
        self.decode(path)
        return path + self.separator + self.encode_position(position)

    def last_position(self, path: str) -> int:
        """路径最后一段的位置"""
        return self.decode(path)[-1]

    def with_last_position(self, path: str, position: int) -> str:
        """替换最后一段位置后的路径（同一父节点下的另一个位置）"""
        positions = self.decode(path)
        positions[-1] = position
        return self.encode(positions)

    def ancestor_paths(self, path: str) -> List[str]:
        """所有严格祖先的路径，从根开始"""
        positions = self.decode(path)
        return [self.encode(positions[:i]) for i in range(1, len(positions))]

    def replace_prefix(self, path: str, old_prefix: str, new_prefix: str) -> str:
        """将路径中的祖先前缀 old_prefix 替换为 new_prefix，后缀原样保留"""
        if path != old_prefix and not self.is_prefix_of(old_prefix, path):
            raise MalformedPath(path, f"不以 {old_prefix!r} 为前缀")
        return new_prefix + path[len(old_prefix):]

    def descendant_pattern(self, path: str) -> str:
        """匹配所有子孙路径的 LIKE 模式"""
        return path + self.separator + "%"

    def grandchild_pattern(self, path: str) -> str:
        """匹配孙辈及更深路径的 LIKE 模式（用于排除，只保留直接子节点）"""
        return path + self.separator + "%" + self.separator + "%"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PathCodec):
            return NotImplemented
        return (self.segment_width, self.separator) == (other.segment_width, other.separator)

    def __hash__(self) -> int:
        return hash((self.segment_width, self.separator))

    def __repr__(self) -> str:
        return f"PathCodec(segment_width={self.segment_width}, separator={self.separator!r})"


__all__ = ["PathCodec"]
