# common/settings.py
from __future__ import annotations

import sys
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    # -------- Hub / server ----------
    hub_port: int = Field(8080, alias="HUB_PORT")

    # -------- ARM endpoint ----------
    # Exposed in lowercase, .env UPPERCASE accepted via alias.
    arm_base_url: str = Field("https://management.azure.com", alias="ARM_BASE_URL")
    arm_subscription_id: str | None = Field(default=None, alias="ARM_SUBSCRIPTION_ID")
    arm_api_version: str = Field("2016-11-01", alias="ARM_API_VERSION")
    arm_accept_language: str = Field("en-US", alias="ARM_ACCEPT_LANGUAGE")
    arm_user_agent: str = Field("datalake-hub/0.1.0", alias="ARM_USER_AGENT")

    # -------- Service principal (optional; no Authorization header without it) ----------
    arm_tenant_id: str | None = Field(default=None, alias="ARM_TENANT_ID")
    arm_client_id: str | None = Field(default=None, alias="ARM_CLIENT_ID")
    arm_client_secret: str | None = Field(default=None, alias="ARM_CLIENT_SECRET")

    # -------- Transport / long-running operations ----------
    http_timeout: float = Field(60.0, alias="HTTP_TIMEOUT")           # seconds
    lro_poll_interval: float = Field(5.0, alias="LRO_POLL_INTERVAL")  # seconds, when no Retry-After
    lro_max_polls: int = Field(120, alias="LRO_MAX_POLLS")

    # pydantic-settings config
    model_config = SettingsConfigDict(
        env_file=".env",                 # load env from repo root
        env_file_encoding="utf-8",
        case_sensitive=False,            # allow lower/upper in env
        populate_by_name=True,
        extra="ignore",                  # ignore unknown env keys
    )

    @field_validator("arm_base_url")
    @classmethod
    def _must_be_https(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("ARM_BASE_URL must start with https://")
        return v.rstrip("/") + "/"

    @field_validator("lro_poll_interval", "http_timeout")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(self.arm_tenant_id and self.arm_client_id and self.arm_client_secret)


def _pretty_fail(msg: str) -> None:
    # Print a friendly error once (useful with uvicorn reload)
    print(f"\n[settings] {msg}\n", file=sys.stderr)
    sys.exit(1)


try:
    settings = Settings()
except Exception as e:
    _pretty_fail(
        "Invalid settings. Check .env (repo root), for example:\n"
        "  ARM_BASE_URL=https://management.azure.com\n"
        "  ARM_SUBSCRIPTION_ID=<GUID>\n"
        "  ARM_API_VERSION=2016-11-01\n"
        "Optional:\n"
        "  ARM_TENANT_ID, ARM_CLIENT_ID, ARM_CLIENT_SECRET\n"
        "  HTTP_TIMEOUT=60, LRO_POLL_INTERVAL=5, LRO_MAX_POLLS=120\n"
        "  HUB_PORT=8080\n\n"
        f"Raw error: {e}"
    )
