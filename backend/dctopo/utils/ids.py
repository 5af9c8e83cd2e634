"""Helpers for ARM-style resource identifiers.

ARM identifiers are case-insensitive paths such as
``/subscriptions/<sub>/resourceGroups/<rg>/providers/Microsoft.Network/virtualNetworks/<name>``.
Every cross-reference in the topology is resolved on the normalized form.
"""

from __future__ import annotations

from typing import Optional


def normalize_id(value: Optional[str]) -> str:
    """Return the canonical (stripped, lower-cased) form of *value*."""
    if not value:
        return ""
    return str(value).strip().lower()


def _segments(resource_id: Optional[str]) -> list[str]:
    return [p for p in str(resource_id or "").strip("/").split("/") if p]


def extract_resource_group(resource_id: Optional[str]) -> Optional[str]:
    parts = _segments(resource_id)
    for idx, part in enumerate(parts):
        if part.lower() == "resourcegroups" and idx + 1 < len(parts):
            return parts[idx + 1]
    return None


def extract_resource_name(resource_id: Optional[str]) -> Optional[str]:
    parts = _segments(resource_id)
    return parts[-1] if parts else None
