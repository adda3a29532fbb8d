from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .errors import ConfigError

ENV_PREFIX = "IPFIX_AGENT_"


def parse_bind_address(value: str) -> Tuple[str, int]:
    """
    Split "host:port" into its parts.

    IPv6 hosts must be bracketed, "[::]:4739". An empty host binds every
    interface, ":4739" == "0.0.0.0:4739".
    """
    value = (value or "").strip()
    if value.startswith("["):
        host, sep, port = value[1:].partition("]:")
        if not sep:
            raise ConfigError(f"invalid bind address {value!r}, expected [host]:port")
    else:
        host, sep, port = value.rpartition(":")
        if not sep:
            raise ConfigError(f"invalid bind address {value!r}, expected host:port")
        if ":" in host:
            raise ConfigError(f"invalid bind address {value!r}, bracket IPv6 hosts")

    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"invalid port in bind address {value!r}") from None

    if not 0 <= port_num <= 65535:
        raise ConfigError(f"port out of range in bind address {value!r}")

    return host or "0.0.0.0", port_num


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{ENV_PREFIX}{name} must not be negative, got {value}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


@dataclass
class CollectorConfig:
    """
    Runtime settings. Bind addresses come from the command line, the rest
    from IPFIX_AGENT_* environment variables.
    """

    ipfix_host: str
    ipfix_port: int
    metrics_host: str
    metrics_port: int

    clickhouse_url: str = "http://localhost:8123"
    clickhouse_database: Optional[str] = None
    clickhouse_user: Optional[str] = None
    clickhouse_password: Optional[str] = None
    clickhouse_table: str = "ipfix"
    clickhouse_create_table: bool = False

    batch_max_bytes: int = 1024 * 1024
    batch_max_rows: int = 1000
    batch_period: float = 5.0

    insert_attempts: int = 3
    insert_backoff: float = 1.0

    max_endpoints: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        ipfix_addr: str,
        metrics_addr: str,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "CollectorConfig":
        env = os.environ if environ is None else environ

        ipfix_host, ipfix_port = parse_bind_address(ipfix_addr)
        metrics_host, metrics_port = parse_bind_address(metrics_addr)

        max_endpoints: Optional[int] = _int(env, "MAX_ENDPOINTS", 0)
        if not max_endpoints:
            max_endpoints = None

        return cls(
            ipfix_host=ipfix_host,
            ipfix_port=ipfix_port,
            metrics_host=metrics_host,
            metrics_port=metrics_port,
            clickhouse_url=env.get(ENV_PREFIX + "CLICKHOUSE_URL") or cls.clickhouse_url,
            clickhouse_database=env.get(ENV_PREFIX + "CLICKHOUSE_DATABASE") or None,
            clickhouse_user=env.get(ENV_PREFIX + "CLICKHOUSE_USER") or None,
            clickhouse_password=env.get(ENV_PREFIX + "CLICKHOUSE_PASSWORD") or None,
            clickhouse_table=env.get(ENV_PREFIX + "CLICKHOUSE_TABLE") or cls.clickhouse_table,
            clickhouse_create_table=_bool(env, "CLICKHOUSE_CREATE_TABLE"),
            batch_max_bytes=_int(env, "BATCH_MAX_BYTES", cls.batch_max_bytes, minimum=1),
            batch_max_rows=_int(env, "BATCH_MAX_ROWS", cls.batch_max_rows, minimum=1),
            batch_period=_float(env, "BATCH_PERIOD", cls.batch_period),
            insert_attempts=_int(env, "INSERT_ATTEMPTS", cls.insert_attempts, minimum=1),
            insert_backoff=_float(env, "INSERT_BACKOFF", cls.insert_backoff),
            max_endpoints=max_endpoints,
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL") or cls.log_level,
        )
