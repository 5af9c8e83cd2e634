"""Startup hook: report configuration problems and start from an empty cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from fastapi import FastAPI

from dctopo.settings import settings
from dctopo.topology import service as topology_service

logger = logging.getLogger(__name__)


@dataclass
class StartupDiagnostics:
    azure_configured: bool = False
    env_issues: List[str] = field(default_factory=list)


def collect_env_issues(cfg=settings) -> List[str]:
    issues = [f"Environment variable '{name}' is not set" for name in cfg.azure_missing_envs]
    if not cfg.azure_api_base.startswith("https://"):
        issues.append(f"AZURE_API_BASE should use https (got {cfg.azure_api_base!r})")
    return issues


def register_startup_events(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        diagnostics = StartupDiagnostics(
            azure_configured=settings.azure_configured,
            env_issues=collect_env_issues(),
        )
        if diagnostics.env_issues:
            logger.error("Configuration issues detected: %s", diagnostics.env_issues)
        else:
            logger.info(
                "Azure configuration validated (subscription=%s, columns=%s, cache_ttl=%ss)",
                settings.azure_subscription_id,
                settings.topology_columns,
                settings.topology_cache_ttl,
            )

        topology_service.reset_caches()
        app.state.startup_diagnostics = diagnostics
