"""
Write path: batches of parametrized statements run as one transaction,
retried from a fresh connection when the failure is transient.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence

from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import RollbackError, TransactionError
from .classifier import TransientErrorClassifier, sqlstate_of

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_ROW_IDENTIFIER_TYPES = frozenset({"ROWID", "oracle.sql.ROWID"})

GeneratedKeysConsumer = Callable[[List[int]], None]


class SqlUpdateStatement:
    def __init__(
        self,
        sql: str,
        parameters: Sequence[Any],
        generated_keys_consumer: Optional[GeneratedKeysConsumer] = None,
    ):
        self.sql = sql
        self.parameters = list(parameters)
        self.generated_keys_consumer = generated_keys_consumer
        self.generated_keys: List[int] = []

    def add_generated_key(self, key: int) -> None:
        self.generated_keys.append(key)

    def accept_generated_keys(self) -> None:
        if self.generated_keys_consumer is not None:
            self.generated_keys_consumer(list(self.generated_keys))

    @property
    def is_insert(self) -> bool:
        return self.sql.lstrip().upper().startswith("INSERT")

    def __repr__(self) -> str:
        return f"SqlUpdateStatement(sql={self.sql!r}, parameters={self.parameters!r})"


class TransactionalUpdateExecutor:
    def __init__(
        self,
        connection_supplier: Callable[[], Connection],
        classifier: Optional[TransientErrorClassifier] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        row_identifier_types: Iterable[str] = DEFAULT_ROW_IDENTIFIER_TYPES,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._connection_supplier = connection_supplier
        self.classifier = classifier or TransientErrorClassifier()
        self.max_attempts = max_attempts
        self.row_identifier_types = frozenset(row_identifier_types)

    def execute_update(self, statements: Sequence[SqlUpdateStatement]) -> None:
        """
        Runs all statements in one transaction. Consumers receive their
        generated keys, in input order, only after a successful commit.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                self._run_transaction(statements)
                break
            except TransactionError as e:
                if not e.retryable or attempt >= self.max_attempts:
                    raise
                logger.warning(
                    f"Transient failure ({e.kind}, SQLSTATE {e.sqlstate}) on attempt "
                    f"{attempt}/{self.max_attempts}, retrying transaction"
                )

        for statement in statements:
            statement.accept_generated_keys()

    def _run_transaction(self, statements: Sequence[SqlUpdateStatement]) -> None:
        for statement in statements:
            statement.generated_keys.clear()

        connection = self._connection_supplier()
        transaction = None
        current: Optional[SqlUpdateStatement] = None
        try:
            transaction = connection.begin()
            for current in statements:
                result = connection.exec_driver_sql(current.sql, tuple(current.parameters))
                self._harvest_generated_keys(current, result)
            transaction.commit()
        except SQLAlchemyError as e:
            logger.error(f"SqlStatementList: {list(statements)}")
            logger.error(f"SQL: {current}")
            logger.error(str(e))
            self._rollback(transaction)
            raise self._to_transaction_error(e) from e
        except BaseException:
            self._rollback(transaction)
            raise
        finally:
            connection.close()

    def _rollback(self, transaction) -> None:
        if transaction is None or not transaction.is_active:
            return
        try:
            transaction.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback error! connection: {e}")
            raise RollbackError(f"Rollback failed: {e}", sqlstate=sqlstate_of(e)) from e

    def _to_transaction_error(self, error: SQLAlchemyError) -> TransactionError:
        kind = self.classifier.classify(error)
        return TransactionError(
            f"Transaction failed: {error}",
            sqlstate=sqlstate_of(error),
            kind=kind.value if kind else None,
            retryable=kind is not None,
        )

    def _harvest_generated_keys(self, statement: SqlUpdateStatement, result: CursorResult) -> None:
        if result.returns_rows:
            for row in result:
                key = row[0]
                if key is None:
                    continue
                if self._is_row_identifier(key):
                    logger.debug(f"Skipping row identifier key of type {type(key).__name__}")
                    continue
                try:
                    statement.add_generated_key(int(key))
                except (TypeError, ValueError) as e:
                    raise TransactionError(
                        f"Generated key {key!r} of {statement.sql} is not an integer"
                    ) from e
        # lastrowid keeps the previous rowid when an INSERT adds no row
        elif statement.is_insert and result.rowcount == 1 and result.lastrowid:
            statement.add_generated_key(int(result.lastrowid))

    def _is_row_identifier(self, key: Any) -> bool:
        key_type = type(key)
        return (
            key_type.__name__ in self.row_identifier_types
            or f"{key_type.__module__}.{key_type.__qualname__}" in self.row_identifier_types
        )
