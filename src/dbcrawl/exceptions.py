from typing import Iterable, Optional


class DbcrawlException(Exception):
    """Base Exception Class"""
    pass

class ConfigurationError(DbcrawlException):
    """Configuration Error"""
    pass

class ConnectivityError(DbcrawlException):
    """Connection Failure"""
    pass

class DocumentError(DbcrawlException):
    """Schema document could not be built"""
    pass

class DocumentFrozenError(DocumentError):
    """Mutation attempted after the document was frozen"""
    pass

class DiscoveryError(DbcrawlException):
    """Metadata crawl failed"""
    pass

class SchemaDiscoveryError(DiscoveryError):
    """No schema or catalog matched the filter"""

    def __init__(self, discarded: Iterable[Optional[str]]):
        self.discarded = list(discarded)
        super().__init__(
            f"Could not find any matching schema. "
            f"The following schemas were considered: {self.discarded}."
        )

class ColumnResolutionError(DiscoveryError):
    """Missing or ambiguous identity type mapper"""
    pass

class UnknownNullableCodeError(DiscoveryError):
    """Driver reported a NULLABLE code outside {0, 1, 2}"""

    def __init__(self, code: int):
        self.code = code
        super().__init__(f"Unknown nullable type {code}")

class QueryExecutionError(DbcrawlException):
    """Read query failed"""
    pass

class ReadOnlyViolationError(QueryExecutionError):
    """Write statement passed to the read path"""
    pass

class TransactionError(DbcrawlException):
    """Write batch failed. `retryable` is set for transient failure classes."""

    def __init__(
        self,
        message: str,
        sqlstate: Optional[str] = None,
        kind: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.kind = kind
        self.retryable = retryable

class RollbackError(TransactionError):
    """Rollback failed while handling a write failure"""

    def __init__(self, message: str, sqlstate: Optional[str] = None):
        super().__init__(message, sqlstate=sqlstate, retryable=False)
