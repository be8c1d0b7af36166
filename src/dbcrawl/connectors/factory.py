from typing import Union
from ..config import DatabaseConfig
from .base import EngineConnectionProvider


def get_connection_provider(config: Union[str, DatabaseConfig], alias: str = "unknown") -> EngineConnectionProvider:
    """
    Factory function to create the connection provider for a database.
    Accepts either a connection string (str) or a DatabaseConfig object.
    """
    if isinstance(config, DatabaseConfig):
        password = config.password.get_secret_value() if config.password else None
        return EngineConnectionProvider(
            config.connection_string,
            db_alias=config.alias,
            username=config.username,
            password=password,
        )
    return EngineConnectionProvider(config, db_alias=alias)
