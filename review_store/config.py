"""
Configuration management for REVIEW_STORE.

Settings come from the process environment, optionally seeded from a
``.env`` file, and are validated with Pydantic before any connection is
attempted.

Example:
    # Using environment variables (MONGO_URL, MONGO_DATABASE, MONGO_OPTIONS)
    config = StoreConfig.from_env()

    # Or using direct parameters
    config = StoreConfig.build(
        mongo_url="mongodb://localhost:27017",
        database="scheduledReview",
    )
"""

import json
import os
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .constants import (
    APP_NAME,
    DEFAULT_MAX_IDLE_TIME_MS,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_OPERATION_TIMEOUT_MS,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from .exceptions import ConfigurationError

# Field name -> environment variable
ENV_VARS: dict[str, str] = {
    "mongo_url": "MONGO_URL",
    "database": "MONGO_DATABASE",
    "options": "MONGO_OPTIONS",
    "max_pool_size": "MONGO_MAX_POOL_SIZE",
    "min_pool_size": "MONGO_MIN_POOL_SIZE",
    "server_selection_timeout_ms": "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "operation_timeout_ms": "MONGO_TIMEOUT_MS",
}


class StoreConfig(BaseModel):
    """
    Connection settings for the document store.

    ``options`` is a free-form bag of MongoClient keyword options; anything
    set there overrides the defaults built by :meth:`client_options`.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    mongo_url: str = Field(..., min_length=1, description="MongoDB connection URL")
    database: str = Field(..., min_length=1, description="Target database name")
    options: dict[str, Any] = Field(
        default_factory=dict, description="Extra MongoClient options"
    )
    max_pool_size: int = Field(
        DEFAULT_MAX_POOL_SIZE, ge=1, description="Maximum connection pool size"
    )
    min_pool_size: int = Field(
        DEFAULT_MIN_POOL_SIZE, ge=0, description="Minimum connection pool size"
    )
    server_selection_timeout_ms: int = Field(
        DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
        ge=1000,
        description="Server selection timeout in milliseconds",
    )
    operation_timeout_ms: int = Field(
        DEFAULT_OPERATION_TIMEOUT_MS,
        ge=1,
        description="Per-operation time limit in milliseconds",
    )

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "StoreConfig":
        if self.min_pool_size > self.max_pool_size:
            raise ValueError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})"
            )
        return self

    @classmethod
    def build(cls, **values: Any) -> "StoreConfig":
        """
        Create a configuration, translating validation failures.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            loc = first.get("loc") or ()
            field_name = str(loc[0]) if loc else None
            raise ConfigurationError(
                f"Invalid configuration: {first.get('msg')}",
                config_key=ENV_VARS.get(field_name, field_name) if field_name else None,
                config_value=values.get(field_name) if field_name else None,
                context={"error_count": e.error_count()},
            ) from e

    @classmethod
    def from_env(cls, env_file: str | None = None, **overrides: Any) -> "StoreConfig":
        """
        Load configuration from the environment.

        A ``.env`` file is loaded first (``env_file`` or the nearest one found
        from the working directory). Variables already present in the
        environment win over the file.

        Args:
            env_file: Optional path to a dotenv file
            **overrides: Field values taking precedence over the environment

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        load_dotenv(env_file or find_dotenv(usecwd=True), override=False)

        values: dict[str, Any] = {}
        for field_name, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            if field_name == "options":
                values[field_name] = _parse_options(raw)
            else:
                values[field_name] = raw

        values.update(overrides)
        return cls.build(**values)

    def client_options(self) -> dict[str, Any]:
        """Keyword arguments for the MongoDB client constructor."""
        client_options: dict[str, Any] = {
            "appname": APP_NAME,
            "maxPoolSize": self.max_pool_size,
            "minPoolSize": self.min_pool_size,
            "maxIdleTimeMS": DEFAULT_MAX_IDLE_TIME_MS,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "timeoutMS": self.operation_timeout_ms,
            # Callers own retry policy
            "retryWrites": False,
            "retryReads": False,
        }
        client_options.update(self.options)
        return client_options

    @property
    def redacted_url(self) -> str:
        """Connection URL with any credentials removed, safe for logs."""
        return redact_url(self.mongo_url)


def redact_url(url: str) -> str:
    """Strip the userinfo part of a connection URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparseable url>"
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


def _parse_options(raw: str) -> dict[str, Any]:
    try:
        options = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"MONGO_OPTIONS is not valid JSON: {e}", config_key="MONGO_OPTIONS"
        ) from e
    if not isinstance(options, dict):
        raise ConfigurationError(
            "MONGO_OPTIONS must be a JSON object",
            config_key="MONGO_OPTIONS",
            config_value=type(options).__name__,
        )
    return options
