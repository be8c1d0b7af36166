from enum import Enum
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError


class TransientErrorKind(str, Enum):
    COMMUNICATION_LINK_FAILURE = "communication_link_failure"
    SERIALIZATION_FAILURE = "serialization_failure"


DEFAULT_TRANSIENT_SQLSTATES: Mapping[str, TransientErrorKind] = {
    "08S01": TransientErrorKind.COMMUNICATION_LINK_FAILURE,
    "40001": TransientErrorKind.SERIALIZATION_FAILURE,
}


def sqlstate_of(error: BaseException) -> Optional[str]:
    """
    Best-effort SQLSTATE of a driver error wrapped by SQLAlchemy.

    psycopg exposes `sqlstate`, psycopg2 `pgcode`; MySQL drivers only carry a
    numeric error code as first argument, which is returned as a string.
    """
    orig = getattr(error, "orig", None) or error
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return str(args[0])
    return None


class TransientErrorClassifier:
    """Looks up driver errors in a table of retryable SQLSTATE codes."""

    def __init__(self, table: Optional[Mapping[str, TransientErrorKind]] = None):
        self.table = dict(table if table is not None else DEFAULT_TRANSIENT_SQLSTATES)

    def classify(self, error: SQLAlchemyError) -> Optional[TransientErrorKind]:
        sqlstate = sqlstate_of(error)
        if sqlstate is None:
            return None
        return self.table.get(sqlstate)
