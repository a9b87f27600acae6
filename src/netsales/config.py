"""
Configuration system for netsales using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError, DatabaseConfigurationError


class DatabaseConnection(BaseModel):
    """Database connection configuration."""

    url: Optional[str] = Field(None, description="PostgreSQL URL, overrides the fields below")
    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: Optional[str] = Field(None, description="Database name")
    user: str = Field("postgres", description="Database user")
    password: str = Field("", description="Database password")
    ssl_mode: Optional[str] = Field("prefer", description="SSL mode")
    min_size: int = Field(1, description="Minimum connections in pool")
    max_size: int = Field(5, description="Maximum connections in pool")
    command_timeout: float = Field(60.0, description="Command timeout in seconds")

    def to_connection_config(self) -> ConnectionConfig:
        """Build the connection pool configuration."""
        try:
            if self.url:
                config = ConnectionConfig.from_url(self.url)
                return config.model_copy(
                    update={
                        "min_size": self.min_size,
                        "max_size": self.max_size,
                        "command_timeout": self.command_timeout,
                    }
                )
            if not self.database:
                raise ConfigurationError(
                    "Database connection requires either a url or a database name"
                )
            return ConnectionConfig(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                ssl_mode=self.ssl_mode,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
        except (DatabaseConfigurationError, ValidationError) as e:
            raise ConfigurationError(f"Invalid database connection: {e}") from e


class ReconciliationConfig(BaseModel):
    """Schema reconciliation configuration."""

    schema_name: str = Field("public", description="Schema that holds the tables")
    mode: Literal["apply", "dry_run"] = Field(
        "apply", description="Reconciliation mode"
    )
    statement_timeout: int = Field(
        30, description="Per-statement timeout in seconds, 0 disables it"
    )
    spec_file: Optional[str] = Field(
        None, description="YAML table spec file, defaults to the built-in catalog"
    )


class ApiConfig(BaseModel):
    """HTTP API configuration."""

    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(3000, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class NetsalesConfig(BaseSettings):
    """Main netsales configuration."""

    service_name: str = Field("netsales", description="Service name")
    debug: bool = Field(False, description="Enable debug mode")

    database_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("database_url", "NETSALES_DATABASE_URL", "DATABASE_URL"),
        description="PostgreSQL URL taken from the environment",
    )
    database: DatabaseConnection = Field(
        default_factory=DatabaseConnection, description="Database connection"
    )
    reconciliation: ReconciliationConfig = Field(
        default_factory=ReconciliationConfig,
        description="Schema reconciliation configuration",
    )
    api: ApiConfig = Field(default_factory=ApiConfig, description="HTTP API configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NETSALES_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "NetsalesConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "NetsalesConfig":
        """Load from a YAML file when given, otherwise from the environment."""
        if path:
            return cls.from_yaml(path)
        try:
            return cls()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def connection_config(self) -> ConnectionConfig:
        """Resolve the pool configuration, preferring DATABASE_URL."""
        database = self.database
        if self.database_url:
            database = database.model_copy(update={"url": self.database_url})
        config = database.to_connection_config()
        if self.reconciliation.statement_timeout:
            config = config.model_copy(
                update={"statement_timeout": self.reconciliation.statement_timeout}
            )
        return config

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True), f, default_flow_style=False, indent=2
            )
