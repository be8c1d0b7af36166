import fnmatch
from typing import Callable, Dict, List, Optional
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, SecretStr, ValidationError
from .exceptions import ConfigurationError
from .execution.classifier import DEFAULT_TRANSIENT_SQLSTATES, TransientErrorKind
from .execution.update import DEFAULT_MAX_ATTEMPTS, DEFAULT_ROW_IDENTIFIER_TYPES

class DatabaseConfig(BaseModel):
    alias: str
    type: Optional[str] = None  # sqlite, postgresql, mysql, oracle; defaults to the URL dialect
    connection_string: str
    username: Optional[str] = None
    password: Optional[SecretStr] = None

    # fnmatch patterns; empty means every schema
    include_schemas: List[str] = []
    read_only_queries: bool = True

    def schema_filter(self) -> Callable[[Optional[str]], bool]:
        patterns = list(self.include_schemas)
        if not patterns:
            return lambda name: True
        return lambda name: name is not None and any(fnmatch.fnmatchcase(name, p) for p in patterns)

class ExecutionConfig(BaseModel):
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    transient_sqlstates: Dict[str, TransientErrorKind] = Field(
        default_factory=lambda: dict(DEFAULT_TRANSIENT_SQLSTATES)
    )
    row_identifier_types: List[str] = Field(
        default_factory=lambda: sorted(DEFAULT_ROW_IDENTIFIER_TYPES)
    )

class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DBCRAWL_", env_nested_delimiter="__")

    databases: List[DatabaseConfig] = []
    execution: ExecutionConfig = ExecutionConfig()

    @classmethod
    def from_yaml(cls, config_path: Path) -> "AppConfig":
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                raw_config = yaml.safe_load(f) or {}
            return cls(**raw_config)
        except (ValidationError, yaml.YAMLError, TypeError) as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")

    def get_db_config(self, alias: str) -> DatabaseConfig:
        for db in self.databases:
            if db.alias == alias:
                return db
        raise ConfigurationError(f"Database alias '{alias}' not found in config")
