"""Application settings.

Sources, highest priority first:

1. Environment variables: ``XMRPOS_`` prefix, ``__`` between nesting
   levels (``XMRPOS_CALLBACK__LWS_TOKEN``).
2. A YAML file named by ``config_path`` / ``XMRPOS_CONFIG_PATH``.
3. The defaults below.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class LockScope(enum.StrEnum):
    """Granularity of the reconciliation critical section."""

    TRANSACTION = "transaction"
    GLOBAL = "global"


class ServerConfig(BaseModel):
    """HTTP listener."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API and open the POS feed from a browser",
    )


class DatabaseConfig(BaseModel):
    engine: DatabaseEngine = DatabaseEngine.SQLITE
    dsn: str = Field(
        default="sqlite+aiosqlite:///./xmr_pos.db",
        description="SQLAlchemy async URL; the driver must match ``engine``",
    )
    max_idle_connections: PositiveInt = 5
    max_open_connections: PositiveInt = 10
    debug_sql: bool = False

    @model_validator(mode="after")
    def _dsn_matches_engine(self) -> Self:
        if not self.dsn.startswith(self.engine.value):
            msg = f"dsn {self.dsn.split(':', 1)[0]!r} does not match engine {self.engine.value!r}"
            raise ValueError(msg)
        return self


class MoneroPayConfig(BaseModel):
    """Where MoneroPay listens and how long to wait for it."""

    url: str = "http://localhost:5000"
    timeout: PositiveFloat = 30.0


class CallbackConfig(BaseModel):
    """Authentication and freshness rules for inbound notifications."""

    jwt_secret: str = Field(default="", description="HS256 key for MoneroPay callback tokens")
    lws_token: str = Field(default="", description="Shared secret LWS hooks must present")
    lws_max_age: PositiveFloat = Field(
        default=60.0,
        description="Seconds after which an LWS hook event is stale",
    )
    lws_match_window: PositiveFloat = Field(
        default=60.0,
        description="Seconds back from receipt in which a pending transaction may match",
    )
    request_timeout: PositiveFloat = 10.0


class ReconcileConfig(BaseModel):
    lock_scope: LockScope = LockScope.TRANSACTION


class TaskConfig(BaseModel):
    """Cron jobs: the unconfirmed sweep and the retention cleanup."""

    enabled: bool = True
    sweep_interval: PositiveFloat = 30.0
    sweep_timeout: PositiveFloat = 20.0
    query_timeout: PositiveFloat = 8.0
    retention_enabled: bool = True
    retention_period: PositiveFloat = Field(
        default=86400.0,
        description="Age in seconds after which unconfirmed transactions are deleted",
    )
    retention_interval: PositiveFloat = 3600.0


class NotificationsConfig(BaseModel):
    enabled: bool = True
    buffer: PositiveInt = 100


class MetricsConfig(BaseModel):
    enabled: bool = True
    period: PositiveFloat = 15.0


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping; missing, empty or non-mapping files give ``{}``."""
    p = Path(path)
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*, recursing into nested mappings."""
    merged = dict(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], val)
        elif val is not None:
            merged[key] = val
    return merged


class AppConfig(BaseSettings):
    """Top-level configuration; see the module docstring for sources."""

    model_config = SettingsConfigDict(
        env_prefix="XMRPOS_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    moneropay: MoneroPayConfig = Field(default_factory=MoneroPayConfig)
    callback: CallbackConfig = Field(default_factory=CallbackConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        # YAML supplies defaults; anything already in *values* (init args, env) wins.
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        return _deep_merge(_load_yaml(config_path), values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load *path* as the YAML layer; environment variables still override it."""
        return cls(config_path=str(path))
