"""树异常类

定义物化路径树相关的异常层次结构。

异常分类:
    - ConfigurationError: 配置错误（缺少连接、表或列不存在），构造期致命
    - MalformedPath: 路径无法解码，说明数据已损坏
    - NotFound: 按 id/path 查找不到记录，调用方自行决定如何处理
    - InvalidOperation: 非法的结构操作，在任何写入之前拒绝
    - PathOverflow: 同级位置超出路径段宽度
    - StaleNode: 节点已被删除，不能继续操作
    - TransactionFailure: 提交/回滚被存储层拒绝
    - BackingStoreError: 底层数据库错误的透传包装

使用示例:
    from mptree import InvalidOperation, ErrorCode

    try:
        node.move_to(child)
    except InvalidOperation as e:
        print(e.code, e.message)
"""

import copy
from enum import Enum
from typing import Any, Dict, Optional, Union


class ErrorCode(str, Enum):
    """错误代码枚举

    继承自 str，可以直接作为字符串比较。
    """

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MALFORMED_PATH = "MALFORMED_PATH"
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    INVALID_OPERATION = "INVALID_OPERATION"
    PATH_OVERFLOW = "PATH_OVERFLOW"
    STALE_NODE = "STALE_NODE"
    TRANSACTION_FAILURE = "TRANSACTION_FAILURE"
    BACKING_STORE_ERROR = "BACKING_STORE_ERROR"


ErrorCodeType = Union[str, ErrorCode]


class TreeError(Exception):
    """树错误基类

    所有树相关的异常都继承自此类。

    属性:
        message: 错误消息
        code: 错误代码
        extra: 额外的上下文信息（如 path、node_id）
    """

    default_code: ErrorCodeType = ErrorCode.INVALID_OPERATION

    def __init__(self, message: str, code: Optional[ErrorCodeType] = None, **extra: Any):
        self.message = message
        self.code = code or self.default_code
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "message": self.message,
            "code": self.code,
            "extra": copy.deepcopy(self.extra),
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code!r})"


class ConfigurationError(TreeError):
    """配置错误

    缺少连接、连接类型不对、表或列不存在时抛出。
    """

    default_code = ErrorCode.CONFIGURATION_ERROR


class MalformedPath(TreeError):
    """路径格式错误

    路径字符串不是 PathCodec.encode 的产物。
    """

    default_code = ErrorCode.MALFORMED_PATH

    def __init__(self, path: Any, reason: str = "格式不正确"):
        self.path = path
        super().__init__(f"非法路径 {path!r}: {reason}", path=path)


class NotFound(TreeError):
    """记录不存在"""

    default_code = ErrorCode.NODE_NOT_FOUND


class InvalidOperation(TreeError):
    """非法的结构操作

    例如：将节点移动到自己的子孙节点下、不带 cascade 删除非叶子节点。
    """

    default_code = ErrorCode.INVALID_OPERATION


class PathOverflow(InvalidOperation):
    """同级位置超出路径段宽度"""

    default_code = ErrorCode.PATH_OVERFLOW


class StaleNode(TreeError):
    """节点已删除"""

    default_code = ErrorCode.STALE_NODE

    def __init__(self, node_id: Any, path: Optional[str] = None):
        self.node_id = node_id
        super().__init__(f"节点 {node_id!r} 已被删除，无法继续操作", node_id=node_id, path=path)


class TransactionFailure(TreeError):
    """事务提交或回滚失败"""

    default_code = ErrorCode.TRANSACTION_FAILURE

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.original_error = original_error
        super().__init__(message)


class BackingStoreError(TreeError):
    """底层数据库错误

    只做透传，不解释原始错误的含义。
    """

    default_code = ErrorCode.BACKING_STORE_ERROR

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.original_error = original_error
        super().__init__(message)


__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "TreeError",
    "ConfigurationError",
    "MalformedPath",
    "NotFound",
    "InvalidOperation",
    "PathOverflow",
    "StaleNode",
    "TransactionFailure",
    "BackingStoreError",
]
