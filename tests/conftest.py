"""
Pytest 公共配置和 Fixtures

提供测试所需的公共资源：
- 临时目录与文件
- 内存数据库引擎与树表
- 已初始化的树句柄
"""

import os
import tempfile
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mptree import MaterializedPathTree
from mptree.config import ConfigLoader

from tests.helpers import tree_metadata


# ==================== 基础 Fixtures ====================

@pytest.fixture(scope="session")
def temp_dir():
    """创建临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def temp_file(tmp_path):
    """创建临时文件的工厂函数"""

    def _create_file(filename: str, content: str = "") -> str:
        filepath = tmp_path / filename
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_text(content, encoding="utf-8")
        return str(filepath)

    return _create_file


@pytest.fixture(autouse=True)
def clear_config_cache():
    """每个测试前后清空 YAML 配置缓存"""
    ConfigLoader.clear_cache()
    yield
    ConfigLoader.clear_cache()


@pytest.fixture(autouse=True)
def clean_mptree_env(monkeypatch):
    """移除可能影响默认配置的环境变量"""
    for key in list(os.environ):
        if key.startswith("MPTREE_"):
            monkeypatch.delenv(key, raising=False)


# ==================== 数据库 Fixtures ====================

@pytest.fixture(scope="function")
def memory_engine():
    """创建内存数据库引擎

    使用 StaticPool 和 check_same_thread=False 确保：
    1. 所有操作使用同一个连接（StaticPool）
    2. 允许跨线程访问（check_same_thread=False）
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    tree_metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_connection(memory_engine) -> Generator[Connection, None, None]:
    """创建数据库连接（树表已建好）"""
    with memory_engine.connect() as conn:
        yield conn


@pytest.fixture
def db_session(memory_engine) -> Generator[Session, None, None]:
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tree(db_connection) -> MaterializedPathTree:
    """默认配置的树句柄（自动创建根节点）"""
    return MaterializedPathTree(db_connection)
