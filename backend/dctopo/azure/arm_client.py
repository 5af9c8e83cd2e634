"""Minimal Azure Resource Manager client.

Client-credentials token shared by every client instance in the process,
one re-authentication on 401, one throttling pause on 429, and ``nextLink``
pagination. Every failure surfaces as ``HTTPException`` so callers can either
let it propagate to the route or record it as a partial failure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional

import requests
from fastapi import HTTPException

from dctopo.settings import settings

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"
LOGIN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"

TOKEN_TIMEOUT = 10
REQUEST_TIMEOUT = 20
MAX_RETRY_AFTER = 60
ERROR_TEXT_LIMIT = 200

_TOKEN_LOCK = Lock()
_TOKEN_STATE: Optional["TokenState"] = None
_TOKEN_REFRESH_MARGIN = 120


@dataclass
class TokenState:
    token: str
    expires_at: float

    def usable(self) -> bool:
        return self.expires_at - _TOKEN_REFRESH_MARGIN > _now()


def _now() -> float:
    return time.time()


def _json_or_none(response: requests.Response) -> Optional[Dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _short_text(response: requests.Response) -> str:
    text = (getattr(response, "text", "") or "").strip()
    if len(text) > ERROR_TEXT_LIMIT:
        return f"{text[:ERROR_TEXT_LIMIT]}..."
    return text


def _auth_error(status_code: int, payload: Optional[Dict[str, Any]]) -> HTTPException:
    detail = f"Azure auth failed ({status_code})"
    reason = (payload or {}).get("error_description") or (payload or {}).get("error")
    if reason:
        detail = f"{detail}: {reason}"
    return HTTPException(status_code=status_code if status_code in {400, 401, 403} else 502, detail=detail)


def _arm_error(response: requests.Response) -> HTTPException:
    detail = f"Azure ARM error ({response.status_code})"
    text = _short_text(response)
    if text:
        detail = f"{detail}: {text}"
    return HTTPException(status_code=response.status_code, detail=detail)


def _retry_after(response: requests.Response) -> int:
    raw = response.headers.get("Retry-After") if response.headers else None
    try:
        delay = int(raw) if raw else 1
    except ValueError:
        delay = 1
    return max(0, min(delay, MAX_RETRY_AFTER))


class AzureArmClient:
    """Subscription-scoped ARM reader built from the process settings."""

    def __init__(self) -> None:
        self.tenant_id = settings.azure_tenant_id
        self.client_id = settings.azure_client_id
        self.client_secret = settings.azure_client_secret
        self.subscription_id = settings.azure_subscription_id or ""
        self.base_url = (settings.azure_api_base or "https://management.azure.com").rstrip("/")
        self.compute_api_version = settings.azure_api_version_compute
        self.network_api_version = settings.azure_api_version_network
        self.max_pages = settings.azure_max_pages

    def _ensure_configured(self) -> None:
        if settings.test_mode:
            return
        missing = list(settings.azure_missing_envs or [])
        if missing:
            raise HTTPException(
                status_code=500,
                detail={"detail": "Azure configuration incomplete", "missing": missing},
            )

    # token

    def _fetch_token(self) -> TokenState:
        self._ensure_configured()
        url = LOGIN_URL.format(tenant=(self.tenant_id or "").strip())
        form = {
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
            "grant_type": "client_credentials",
            "scope": ARM_SCOPE,
        }
        try:
            resp = requests.post(url, data=form, timeout=TOKEN_TIMEOUT)
        except requests.RequestException as exc:
            raise HTTPException(status_code=502, detail=f"Error connecting to Azure OAuth: {exc}") from exc

        payload = _json_or_none(resp)
        if resp.status_code >= 400:
            raise _auth_error(resp.status_code, payload)
        if payload is None:
            raise HTTPException(status_code=502, detail="Invalid OAuth response (not JSON)")

        token = payload.get("access_token")
        if not token:
            raise HTTPException(status_code=502, detail="OAuth response without access_token")
        try:
            lifetime = int(payload.get("expires_in") or 3600)
        except (TypeError, ValueError):
            lifetime = 3600
        logger.info("Azure ARM token acquired (expires in %ss)", lifetime)
        return TokenState(token=token, expires_at=_now() + max(lifetime, 60))

    def get_token(self) -> str:
        global _TOKEN_STATE
        if settings.test_mode:
            return ""
        state = _TOKEN_STATE
        if state is not None and state.usable():
            return state.token
        with _TOKEN_LOCK:
            if _TOKEN_STATE is None or not _TOKEN_STATE.usable():
                _TOKEN_STATE = self._fetch_token()
            return _TOKEN_STATE.token

    def reset_token(self) -> None:
        global _TOKEN_STATE
        with _TOKEN_LOCK:
            _TOKEN_STATE = None

    # requests

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: int = REQUEST_TIMEOUT,
    ) -> Dict[str, Any]:
        self._ensure_configured()
        reauthenticated = False
        throttled = False
        while True:
            headers = {"Accept": "application/json", "Authorization": f"Bearer {self.get_token()}"}
            try:
                response = requests.request(method, url, headers=headers, params=params, timeout=timeout)
            except requests.RequestException as exc:
                raise HTTPException(status_code=502, detail=f"Error connecting to Azure ARM: {exc}") from exc

            if response.status_code == 401 and not reauthenticated:
                reauthenticated = True
                self.reset_token()
                continue
            if response.status_code == 429 and not throttled:
                throttled = True
                delay = _retry_after(response)
                logger.warning("Azure ARM throttled, retrying in %ss: %s", delay, url.split("?")[0])
                time.sleep(delay)
                continue
            break

        if response.status_code >= 400:
            raise _arm_error(response)
        payload = _json_or_none(response)
        if payload is None:
            raise HTTPException(status_code=502, detail="Invalid ARM response (not JSON)")
        return payload

    def arm_get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}/{path.lstrip('/')}"
        return self.request_json("GET", url, params=params)

    def iter_pages(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield each page of a list response, stopping at ``max_pages``."""
        url: Optional[str] = path
        page_params = params
        for _ in range(self.max_pages):
            if not url:
                return
            payload = self.arm_get(url, params=page_params)
            yield payload
            # nextLink already carries api-version and the skip token.
            url = payload.get("nextLink")
            page_params = None
        if url:
            logger.warning("Azure ARM pagination stopped after %s pages: %s", self.max_pages, path)

    def arm_get_paged(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> List[dict]:
        items: List[dict] = []
        for page in self.iter_pages(path, params=params):
            value = page.get("value")
            if isinstance(value, list):
                items.extend(value)
        return items
