"""事务执行器

为多行结构变更提供"全部成功或全部失败"的保证：
- 启动时探测一次连接是否支持事务，结果在句柄生命周期内保持不变
- 支持事务：开启事务 -> 执行 -> 提交；失败则回滚并重新抛出原始异常
- 连接已处于调用方开启的事务中：直接加入（类似 REQUIRED 传播行为），
  提交与回滚由调用方负责
- 不支持事务：直接执行，多语句操作记录警告（可能出现部分写入）

使用示例:
    runner = TransactionRunner(connection)
    runner.detect()

    def work():
        connection.execute(...)
        connection.execute(...)

    runner.run(work)
"""

from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import TransactionFailure
from .log import get_logger

logger = get_logger("mptree.transaction")

T = TypeVar("T")


class TransactionState(str, Enum):
    """最近一次执行单元的事务状态

    状态说明:
        - INACTIVE: 尚未执行过
        - ACTIVE: 正在执行
        - COMMITTED: 已提交
        - ROLLED_BACK: 已回滚
        - FAILED: 提交失败
        - JOINED: 加入了调用方的事务，结果由调用方决定
        - UNWRAPPED: 存储不支持事务，直接执行
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    JOINED = "joined"
    UNWRAPPED = "unwrapped"

    def is_terminal(self) -> bool:
        return self in (
            TransactionState.COMMITTED,
            TransactionState.ROLLED_BACK,
            TransactionState.FAILED,
        )


class TransactionRunner:
    """事务执行器

    Args:
        connection: SQLAlchemy Connection 或 Session
        can_do_transactions: 已知的事务能力，None 表示需要调用 detect() 探测
    """

    def __init__(self, connection: Any, can_do_transactions: Optional[bool] = None):
        self._connection = connection
        self._can_do_transactions = can_do_transactions
        self.last_state = TransactionState.INACTIVE

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def can_do_transactions(self) -> bool:
        """是否支持事务（未探测时先探测）"""
        if self._can_do_transactions is None:
            self.detect()
        return self._can_do_transactions

    def detect(self) -> bool:
        """探测连接是否支持事务

        尝试开启一个事务并立即回滚。连接已经处于事务中时视为支持。
        """
        conn = self._connection
        if conn.in_transaction():
            self._can_do_transactions = True
            return True

        try:
            tx = conn.begin()
            tx.rollback()
            self._can_do_transactions = True
        except (SQLAlchemyError, NotImplementedError) as e:
            logger.warning(f"连接不支持事务，多行结构变更将无法保证原子性: {e}")
            self._can_do_transactions = False

        return self._can_do_transactions

    def run(self, work: Callable[[], T], multi_statement: bool = True) -> T:
        """执行一个工作单元

        Args:
            work: 无参可调用对象，返回值原样返回
            multi_statement: 是否包含多条写语句（仅影响不支持事务时的警告）

        Returns:
            work 的返回值

        Raises:
            TransactionFailure: 提交失败
            Exception: work 抛出的原始异常
        """
        if not self.can_do_transactions:
            if multi_statement:
                logger.warning("存储不支持事务，多语句操作直接执行，失败时可能留下部分结果")
            self.last_state = TransactionState.UNWRAPPED
            return work()

        conn = self._connection
        if conn.in_transaction():
            # 加入调用方的事务
            logger.debug("加入调用方已开启的事务")
            self.last_state = TransactionState.JOINED
            return work()

        tx = conn.begin()
        self.last_state = TransactionState.ACTIVE
        try:
            result = work()
        except BaseException:
            self._safe_rollback(tx)
            raise

        try:
            tx.commit()
        except SQLAlchemyError as e:
            self._safe_rollback(tx)
            self.last_state = TransactionState.FAILED
            raise TransactionFailure(f"事务提交失败: {e}", original_error=e) from e

        self.last_state = TransactionState.COMMITTED
        return result

    def _safe_rollback(self, tx: Any) -> None:
        """回滚事务，回滚自身的失败只记录日志，保证原始异常被抛出"""
        try:
            if tx.is_active:
                tx.rollback()
            self.last_state = TransactionState.ROLLED_BACK
        except Exception as e:
            self.last_state = TransactionState.FAILED
            logger.error(f"事务回滚失败（已忽略，原始异常将继续抛出）: {e}")


__all__ = ["TransactionState", "TransactionRunner"]
