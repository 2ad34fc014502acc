"""
Configuration loader for the DNS proxy API.

Reads the ``KEY=VALUE`` file written by the installer
(``/etc/acme-dns-tools/dns-proxy-api.conf``). Config is loaded once at
startup and immutable during runtime.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .allowlist import Allowlist
from .providers.cli_txt_writer import DEFAULT_CLI_PATH

__all__ = [
    "GatewayConfig",
    "load_gateway_config",
    "parse_config_text",
]

DEFAULT_CONFIG_PATH = Path("/etc/acme-dns-tools/dns-proxy-api.conf")
DEFAULT_CERT_BASE_DIR = Path("/etc/letsencrypt/live")

_PLACEHOLDER_PREFIX = "REPLACE_WITH_"


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable service configuration."""

    # /set_txt
    api_key: str

    # /certs/{domain}/{file}
    cert_bearer_token: str
    cert_dns_allowlist: Allowlist
    cert_base_dir: Path = DEFAULT_CERT_BASE_DIR

    # Listener
    tls_cert: Path | None = None
    tls_key: Path | None = None

    # Bounds on blocking work
    dns_timeout_s: float = 3.0
    file_read_timeout_s: float = 3.0

    # TXT record writer
    txt_cli_path: str = DEFAULT_CLI_PATH
    txt_cli_timeout_s: float = 30.0

    @property
    def tls_enabled(self) -> bool:
        return self.tls_cert is not None and self.tls_key is not None


def load_gateway_config(path: Path | None = None) -> GatewayConfig:
    """
    Load configuration from a ``KEY=VALUE`` file.

    Args:
        path: Config file. Defaults to $DNS_PROXY_API_CONFIG, then
            /etc/acme-dns-tools/dns-proxy-api.conf.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If a required key is missing or a value is invalid.
    """
    config_path = path or _resolve_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        return _parse_config(parse_config_text(f.read()))


def _resolve_config_path() -> Path:
    env_path = os.environ.get("DNS_PROXY_API_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def parse_config_text(text: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines; blank lines and ``#`` comments are skipped."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if line == "" or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        values[key.strip()] = value.strip()
    return values


def _parse_config(raw: Mapping[str, str]) -> GatewayConfig:
    api_key = _require(raw, "API_KEY")
    bearer_token = _require(raw, "CERT_BEARER_TOKEN")
    allowlist = Allowlist.from_csv(_require(raw, "CERT_DNS_ALLOWLIST"))
    if len(allowlist) == 0:
        raise ValueError("CERT_DNS_ALLOWLIST must name at least one hostname")

    base_dir = _optional(raw, "CERT_BASE_DIR")
    tls_cert = _optional(raw, "TLS_CERT")
    tls_key = _optional(raw, "TLS_KEY")
    if (tls_cert is None) != (tls_key is None):
        raise ValueError("TLS_CERT and TLS_KEY must be set together")

    return GatewayConfig(
        api_key=api_key,
        cert_bearer_token=bearer_token,
        cert_dns_allowlist=allowlist,
        cert_base_dir=Path(base_dir) if base_dir else DEFAULT_CERT_BASE_DIR,
        tls_cert=Path(tls_cert) if tls_cert else None,
        tls_key=Path(tls_key) if tls_key else None,
        dns_timeout_s=_positive_float(raw, "CERT_DNS_TIMEOUT_S", 3.0),
        file_read_timeout_s=_positive_float(raw, "CERT_READ_TIMEOUT_S", 3.0),
        txt_cli_path=_optional(raw, "DNS_PROXY_CLI") or DEFAULT_CLI_PATH,
        txt_cli_timeout_s=_positive_float(raw, "DNS_PROXY_CLI_TIMEOUT_S", 30.0),
    )


def _require(raw: Mapping[str, str], key: str) -> str:
    value = _optional(raw, key)
    if value is None:
        raise ValueError(f"{key} not found in config file")
    return value


def _optional(raw: Mapping[str, str], key: str) -> str | None:
    value = raw.get(key, "").strip()
    if value == "":
        return None
    if value.startswith(_PLACEHOLDER_PREFIX):
        raise ValueError(f"{key} still holds the installer placeholder {value}")
    return value


def _positive_float(raw: Mapping[str, str], key: str, default: float) -> float:
    value = _optional(raw, key)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number") from exc
    if parsed <= 0:
        raise ValueError(f"{key} must be positive")
    return parsed

