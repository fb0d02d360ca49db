"""Client configuration settings."""

from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgrestql.errors import ConfigurationError
from pgrestql.schema.column_path import validate_identifier


class ClientConfig(BaseSettings):
    """Connection and compilation settings for one gateway.

    Values are read from ``PGRESTQL_*`` environment variables; explicit
    keyword arguments take precedence.
    """

    url: str = Field(default="http://localhost:3000", description="Gateway base URL")
    schema_name: str | None = Field(
        default=None,
        description="Schema sent as Accept-Profile / Content-Profile",
    )
    api_key: str | None = Field(default=None, description="Sent as the apikey header")
    authorization: str | None = Field(
        default=None,
        description="Precomputed Authorization header value, e.g. 'Bearer <jwt>'",
    )
    headers: dict[str, str] = Field(default_factory=dict, description="Extra default headers")
    transform_columns: bool = Field(
        default=False,
        description="Convert camelCase columns to snake_case and back",
    )
    timeout: float | None = Field(default=30.0, gt=0, description="Request timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="PGRESTQL_",
        extra="ignore",
    )

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError("url must be an absolute http(s) URL.", "url", value)
        return value.rstrip("/")

    @field_validator("schema_name")
    @classmethod
    def _check_schema(cls, value: str | None) -> str | None:
        if value is not None:
            validate_identifier(value, "schema")
        return value
