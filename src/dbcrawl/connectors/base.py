import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ..domain.models import ConnectionHealth, HealthStatus
from ..exceptions import ConnectivityError

logger = logging.getLogger(__name__)

PASSWORD_PROTECTED = "********"


class EngineConnectionProvider:
    """
    Connection provider backed by a SQLAlchemy engine.
    The engine (and its pool) is created lazily on first use.
    """
    def __init__(
        self,
        connection_string: str,
        db_alias: str = "unknown",
        username: Optional[str] = None,
        password: Optional[str] = None,
        engine_options: Optional[Dict[str, Any]] = None,
    ):
        try:
            url = make_url(connection_string)
        except ArgumentError as e:
            raise ConnectivityError(f"Invalid connection string for {db_alias}: {e}")
        if username is not None:
            url = url.set(username=username)
        if password is not None:
            url = url.set(password=password)
        self._url: URL = url
        self.db_alias = db_alias
        self._engine_options = engine_options or {}
        self._engine: Optional[Engine] = None

    @property
    def dialect_name(self) -> str:
        return self._url.get_backend_name()

    @property
    def database_name(self) -> Optional[str]:
        return self._url.database

    @property
    def redacted_url(self) -> str:
        return self._url.render_as_string(hide_password=True)

    def _describe(self) -> str:
        return (
            f"{self.db_alias} using url \"{self.redacted_url}\", "
            f"user = {self._url.username}, password = {PASSWORD_PROTECTED}"
        )

    def connect(self) -> None:
        if not self._engine:
            try:
                self._engine = create_engine(self._url, **self._engine_options)
            except Exception as e:
                raise ConnectivityError(f"Failed to create engine for {self._describe()}: {e}") from e

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            self._engine = None

    def get_connection(self) -> Connection:
        self.connect()
        try:
            return self._engine.connect()
        except SQLAlchemyError as e:
            msg = f"Unable to get connection for {self._describe()}"
            logger.error(msg)
            raise ConnectivityError(msg) from e

    def check_health(self) -> ConnectionHealth:
        start_time = time.time()
        error_msg = None

        try:
            with self.get_connection() as conn:
                conn.execute(text("SELECT 1"))
                status = HealthStatus.SUCCESS
        except ConnectivityError as e:
            error_msg = f"{e}: {e.__cause__}" if e.__cause__ else str(e)
            status = HealthStatus.FAILED
        except SQLAlchemyError as e:
            error_msg = str(e)
            status = HealthStatus.FAILED

        latency = (time.time() - start_time) * 1000  # ms

        if latency > 5000 and status == HealthStatus.SUCCESS:
            status = HealthStatus.TIMEOUT

        return ConnectionHealth(
            db_alias=self.db_alias,
            status=status,
            latency_ms=round(latency, 2),
            error_message=error_msg
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
