"""Process configuration, read once from the environment at import time.

``main`` loads ``.env`` (python-dotenv) before importing this module. Bad
numeric values never stop the service: they are logged and replaced by the
default or the minimum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_ARM_BASE = "https://management.azure.com"

AZURE_REQUIRED_ENVS: Tuple[str, ...] = (
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_SUBSCRIPTION_ID",
)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Stripped value of *name*; empty strings count as unset."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_bool(name: str) -> bool:
    return (_env(name) or "").lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int) -> int:
    raw = _env(name)
    value = default
    if raw is not None:
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Invalid int for %s=%r, using default=%s", name, raw, default)
    if value < minimum:
        logger.warning("%s (%s) is lower than minimum %s; using %s", name, value, minimum, minimum)
        return minimum
    return value


def _env_list(name: str) -> List[str]:
    raw = _env(name) or ""
    return [item.strip() for item in raw.replace(";", ",").split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str
    log_level: str
    test_mode: bool
    cors_allow_origins: List[str]

    # Azure service principal + ARM
    azure_missing_envs: List[str]
    azure_tenant_id: Optional[str]
    azure_client_id: Optional[str]
    azure_client_secret: Optional[str]
    azure_subscription_id: Optional[str]
    azure_api_base: str
    azure_api_version_compute: str
    azure_api_version_network: str
    azure_max_pages: int
    azure_fetch_max_workers: int

    # Topology pipeline
    topology_cache_ttl: int
    topology_columns: int

    @property
    def azure_configured(self) -> bool:
        return not self.azure_missing_envs


def _build_settings() -> Settings:
    return Settings(
        app_env=(_env("APP_ENV") or "dev").lower(),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        test_mode=_env_bool("TEST_MODE") or os.getenv("PYTEST_RUNNING") == "1",
        cors_allow_origins=_env_list("CORS_ALLOW_ORIGINS"),
        azure_missing_envs=[name for name in AZURE_REQUIRED_ENVS if not _env(name)],
        azure_tenant_id=_env("AZURE_TENANT_ID"),
        azure_client_id=_env("AZURE_CLIENT_ID"),
        azure_client_secret=_env("AZURE_CLIENT_SECRET"),
        azure_subscription_id=_env("AZURE_SUBSCRIPTION_ID"),
        azure_api_base=_env("AZURE_API_BASE", DEFAULT_ARM_BASE),
        azure_api_version_compute=_env("AZURE_API_VERSION_COMPUTE", "2024-07-01"),
        azure_api_version_network=_env("AZURE_API_VERSION_NETWORK", "2023-11-01"),
        azure_max_pages=_env_int("AZURE_MAX_PAGES", 10, 1),
        azure_fetch_max_workers=_env_int("AZURE_FETCH_MAX_WORKERS", 7, 1),
        topology_cache_ttl=_env_int("TOPOLOGY_CACHE_TTL", 300, 0),
        topology_columns=_env_int("TOPOLOGY_COLUMNS", 2, 1),
    )


settings = _build_settings()
