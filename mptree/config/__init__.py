"""配置模块

提供配置管理功能：
- TreeSettings: 树句柄配置（表名、列名、路径编码参数、自动建根）
- LoggingSettings: 日志配置
- MPTreeSettings: 聚合配置，支持 YAML + 环境变量
- ConfigLoader / load_yaml_config: YAML 配置加载

快速开始:
    from mptree.config import TreeSettings, load_yaml_config

    settings = load_yaml_config("config/settings.yaml", TreeSettings, section="tree")

配置优先级: 显式参数 / YAML 文件 > 环境变量 > 默认值
"""

from .settings import (
    TreeSettings,
    LoggingSettings,
    MPTreeSettings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    "TreeSettings",
    "LoggingSettings",
    "MPTreeSettings",
    "ConfigLoader",
    "load_yaml_config",
]
