"""Harness settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tck.schemas.identity import OperatorIdentity

from .exceptions import ConfigurationError


# Values the sample .env ships with; a testnet run must replace them
PLACEHOLDER_CREDENTIALS = {"", "***"}


class Settings(BaseSettings):
    """Harness settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Network selection
    network: str = Field(default="local", description="Network: local or testnet")

    # Control plane (SUT)
    json_rpc_server_url: str = Field(
        default="http://localhost:8544",
        description="JSON-RPC endpoint exposed by the SUT",
    )

    # Read replica
    mirror_node_rest_url: str = Field(
        default="http://localhost:5551",
        description="Mirror node REST base URL (without /api/v1)",
    )

    # Default operator - env vars are OPERATOR_ACCOUNT_ID and OPERATOR_ACCOUNT_PRIVATE_KEY
    operator_account_id: str = Field(default="0.0.2", alias="OPERATOR_ACCOUNT_ID")
    operator_account_private_key: str = Field(
        default="", alias="OPERATOR_ACCOUNT_PRIVATE_KEY"
    )

    # Custom local network, forwarded to the SUT on setup
    node_ip: Optional[str] = Field(default="127.0.0.1:50211")
    node_account_id: Optional[str] = Field(default="0.0.3")
    mirror_network: Optional[str] = Field(default="127.0.0.1:5600")

    # Timeouts (seconds)
    node_timeout: float = Field(default=30.0, gt=0, description="Per-test budget")
    http_timeout: float = Field(default=10.0, gt=0, description="HTTP timeout")

    # Retry-until-consistent defaults
    retry_attempts: int = Field(default=100, ge=1, le=10_000)
    retry_interval_ms: int = Field(default=200, ge=0, le=60_000)

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        valid = {"local", "testnet"}
        lower = v.lower()
        if lower not in valid:
            raise ValueError(f"network must be one of {valid}")
        return lower

    @field_validator("json_rpc_server_url", "mirror_node_rest_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @model_validator(mode="after")
    def drop_custom_network_on_testnet(self) -> "Settings":
        # The SUT picks its own testnet nodes when none are given
        if self.network == "testnet":
            self.node_ip = None
            self.node_account_id = None
            self.mirror_network = None
        return self

    @property
    def is_testnet(self) -> bool:
        return self.network == "testnet"

    @property
    def operator(self) -> OperatorIdentity:
        """Default operator identity used to open the first session of a run."""
        return OperatorIdentity(
            account_id=self.operator_account_id,
            private_key=self.operator_account_private_key,
        )

    def require_operator_credentials(self) -> None:
        """Raise ConfigurationError when testnet credentials are placeholders."""
        if not self.is_testnet:
            return
        if (
            self.operator_account_id in PLACEHOLDER_CREDENTIALS
            or self.operator_account_private_key in PLACEHOLDER_CREDENTIALS
        ):
            raise ConfigurationError(
                "OPERATOR_ACCOUNT_ID and OPERATOR_ACCOUNT_PRIVATE_KEY must be set for testnet",
                details={"network": self.network},
            )


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()
