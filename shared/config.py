import os
from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import urlparse

ENV_PREFIX = "OPSCONSOLE_"

DEFAULT_API_BASE_URL = "http://127.0.0.1:5000/api/v1"

# Poll interval per resource type, seconds. 0 means manual refresh only.
DEFAULT_REFRESH_INTERVALS = {
    "vehicles": 60,
    "approvals": 30,
    "alerts": 30,
    "chats": 15,
    "devices": 60,
    "invoices": 60,
}

_INTERVAL_ENV_NAMES = {
    "vehicles": "REFRESH_FLEET",
    "approvals": "REFRESH_APPROVALS",
    "alerts": "REFRESH_ALERTS",
    "chats": "REFRESH_CHATS",
    "devices": "REFRESH_DEVICES",
    "invoices": "REFRESH_INVOICES",
}


def _env(name: str, default: str) -> str:
    return str(os.getenv(f"{ENV_PREFIX}{name}", default)).strip()


def _int_env(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except Exception:
        return default


@dataclass(frozen=True)
class ConsoleConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = 30.0
    patch_ttl_seconds: float = 300.0
    refresh_intervals: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_REFRESH_INTERVALS))
    log_level: str = "INFO"
    mock_bind_host: str = "127.0.0.1"
    mock_port: int = 5000

    @classmethod
    def from_env(cls) -> "ConsoleConfig":
        intervals = {
            resource: _float_env(env_name, DEFAULT_REFRESH_INTERVALS[resource])
            for resource, env_name in _INTERVAL_ENV_NAMES.items()
        }
        return cls(
            api_base_url=_env("API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            api_timeout=_float_env("API_TIMEOUT", 30.0),
            patch_ttl_seconds=_float_env("PATCH_TTL", 300.0),
            refresh_intervals=intervals,
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            mock_bind_host=_env("MOCK_BIND_HOST", "127.0.0.1"),
            mock_port=_int_env("MOCK_PORT", 5000),
        )

    def refresh_interval(self, resource: str) -> float:
        return float(self.refresh_intervals.get(resource, 0))


def validate_config(config: ConsoleConfig) -> None:
    parsed = urlparse(str(config.api_base_url or "").strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("api_base_url must be a valid http(s) URL")
    if config.api_timeout <= 0:
        raise ValueError("api_timeout must be positive")
    if config.patch_ttl_seconds < 0:
        raise ValueError("patch_ttl_seconds must not be negative")
    for resource, interval in config.refresh_intervals.items():
        if interval < 0:
            raise ValueError(f"refresh interval for {resource} must not be negative")
    if int(config.mock_port) < 1 or int(config.mock_port) > 65535:
        raise ValueError("mock_port must be in range 1..65535")
