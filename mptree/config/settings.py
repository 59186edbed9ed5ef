"""
配置模块
提供树句柄与日志的默认配置，业务项目可以继承并覆盖
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class TreeSettings(BaseSettings):
    """树句柄配置

    使用示例:
        from mptree.config import TreeSettings

        tree_config = TreeSettings(
            table_name="category",
            path_column_name="mpath",
            path_segment_width=4,
        )

    配置说明:
        - path_segment_width: 每层路径段的固定宽度，决定同级节点的容量（10 ** 宽度 - 1）
        - path_separator: 路径段分隔符，字典序必须小于 "0"，且不能是 LIKE 通配符
    """
    table_name: str = Field(default="my_tree", description="树所在的表名")
    id_column_name: str = Field(default="id", description="主键列名")
    path_column_name: str = Field(default="path", description="物化路径列名")
    auto_create_root: bool = Field(default=True, description="根节点不存在时是否自动创建")
    path_segment_width: int = Field(default=5, ge=1, le=18, description="路径段宽度（位数）")
    path_separator: str = Field(default=".", description="路径段分隔符")

    @field_validator("table_name", "id_column_name", "path_column_name")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("表名和列名不能为空")
        return v

    @field_validator("path_separator")
    @classmethod
    def validate_separator(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError(f"分隔符必须是单个字符，当前设置: {v!r}")
        if v >= "0":
            raise ValueError(f"分隔符的字典序必须小于 '0'，当前设置: {v!r}")
        if v in ("%", "_"):
            raise ValueError(f"分隔符不能是 LIKE 通配符，当前设置: {v!r}")
        return v

    class Config:
        env_prefix = "MPTREE_"


class LoggingSettings(BaseSettings):
    """日志配置

    使用示例:
        from mptree.config import LoggingSettings

        log_config = LoggingSettings(level="DEBUG", sql_log_enabled=True)
    """
    level: str = Field(default="INFO", description="日志级别")
    file_path: str = Field(default="", description="日志文件路径，为空则不写文件")
    enable_console: bool = Field(default=True, description="是否启用控制台输出")

    # SQL 日志配置
    sql_log_enabled: bool = Field(default=False, description="是否启用SQL日志")
    sql_log_file_path: str = Field(default="logs/sql.log", description="SQL日志文件路径")
    sql_log_level: str = Field(default="DEBUG", description="SQL日志级别")

    class Config:
        env_prefix = "MPTREE_LOG_"


class MPTreeSettings(BaseSettings):
    """聚合配置

    配置优先级（从高到低）:
        YAML 配置文件 / 显式参数 > 环境变量 > 代码中的默认值

    YAML 配置示例 (config/settings.yaml):
        tree:
          table_name: "category"
          auto_create_root: false
        logging:
          level: "DEBUG"
    """
    tree: TreeSettings = Field(default_factory=TreeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "TreeSettings",
    "LoggingSettings",
    "MPTreeSettings",
]
