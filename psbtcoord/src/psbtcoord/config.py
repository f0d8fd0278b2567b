"""
Configuration management using pydantic-settings.

Settings are resolved once at startup (environment and ``.env``) and are
immutable afterwards. The transport only ever sees the derived
:class:`RpcConfig`.
"""

from __future__ import annotations

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from psbtcoord.constants import DEFAULT_RPC_TIMEOUT, DEFAULT_WALLET_NAME
from psbtcoord.errors import ConfigurationError


def check_rpc_url(url: str) -> str:
    """Reject node URLs httpx cannot send requests to."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ValueError(f"invalid RPC_HOST '{url}': {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"invalid RPC_HOST '{url}': expected http(s)://host[:port]")
    return url


class RpcConfig(BaseModel):
    """Connection parameters for one Bitcoin Core node."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)
    wallet: str | None = None
    timeout: float = Field(default=DEFAULT_RPC_TIMEOUT, gt=0)

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return check_rpc_url(v)

    def endpoint(self, wallet: str | None = None) -> str:
        base = self.url.rstrip("/")
        if wallet is None:
            return base
        return f"{base}/wallet/{wallet}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, frozen=True
    )

    rpc_host: str = ""
    rpc_user: str = ""
    rpc_password: str = Field(default="", repr=False)
    rpc_wallet: str = DEFAULT_WALLET_NAME
    rpc_timeout: float = Field(default=DEFAULT_RPC_TIMEOUT, gt=0)

    # Comma-separated wallets that sign the joined PSBT; empty = rpc_wallet only
    signing_wallets: str = ""

    # PSBT handed over out-of-band by the counterparty
    counterparty_psbt: str = ""

    @model_validator(mode="after")
    def check_required(self) -> Settings:
        missing = [
            name.upper()
            for name in ("rpc_host", "rpc_user", "rpc_password")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ValueError(f"missing required configuration: {', '.join(missing)}")
        check_rpc_url(self.rpc_host)
        return self

    def get_signing_wallets(self) -> list[str]:
        wallets = [w.strip() for w in self.signing_wallets.split(",") if w.strip()]
        return wallets or [self.rpc_wallet]

    def to_rpc_config(self) -> RpcConfig:
        return RpcConfig(
            url=self.rpc_host,
            user=self.rpc_user,
            password=self.rpc_password,
            wallet=self.rpc_wallet,
            timeout=self.rpc_timeout,
        )


def get_settings(**overrides: object) -> Settings:
    """
    Load settings from the environment, ``.env`` and ``overrides``.

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        details = "; ".join(err["msg"] for err in e.errors())
        raise ConfigurationError(f"Invalid configuration: {details}") from e
