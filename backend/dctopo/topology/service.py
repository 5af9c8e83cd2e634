"""Topology pipeline and result cache.

``generate`` is the pure pipeline (correlate → build → layout → render).
``get_topology`` wraps it with the ARM fetch and a short-lived cache so the
routes can serve repeated requests without hitting ARM again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from dctopo.azure import resources
from dctopo.azure.arm_client import AzureArmClient
from dctopo.azure.models import RawTopology
from dctopo.cache import ThreadSafeTTLCache
from dctopo.settings import settings
from dctopo.topology.builder import build_from_raw
from dctopo.topology.layout import layout
from dctopo.topology.models import TopologyResult, TopologySummary, VNetSummary
from dctopo.topology.svg import render_svg

logger = logging.getLogger(__name__)

TOPOLOGY_CACHE_KEY = "azure-dc:topology"

topology_cache = ThreadSafeTTLCache(maxsize=1, ttl=settings.topology_cache_ttl)


@dataclass
class CachedTopology:
    result: TopologyResult
    cached_at: str
    data_source: str = "cache"


def reset_caches() -> None:
    topology_cache.clear()


def generate(raw: RawTopology, *, columns: Optional[int] = None) -> TopologyResult:
    topology = build_from_raw(raw)
    geometry = layout(topology.vnets, topology.peerings, settings.topology_columns if columns is None else columns)
    diagram = render_svg(geometry)
    logger.info(
        "Topology built: %s VNets, %s VMs (%s orphaned), %s peerings, %s upstream errors",
        topology.stats.total_vnets,
        topology.stats.total_vms,
        len(topology.orphaned_vms),
        topology.stats.peering_count,
        len(topology.errors),
    )
    return TopologyResult(topology=topology, diagram=diagram)


def get_topology(*, force_refresh: bool = False, client: Optional[AzureArmClient] = None) -> CachedTopology:
    if not force_refresh:
        cached = topology_cache.get(TOPOLOGY_CACHE_KEY)
        if cached is not None:
            return CachedTopology(result=cached.result, cached_at=cached.cached_at, data_source="cache")

    raw = resources.fetch_raw_topology(client)
    result = generate(raw)
    entry = CachedTopology(
        result=result,
        cached_at=datetime.now(timezone.utc).isoformat(),
        data_source="live",
    )
    topology_cache[TOPOLOGY_CACHE_KEY] = entry
    return entry


def summarize(result: TopologyResult) -> TopologySummary:
    topology = result.topology
    return TopologySummary(
        stats=topology.stats,
        vnets=[
            VNetSummary(
                name=v.vnet.name,
                location=v.vnet.location,
                subnets=len(v.subnets),
                vms=v.vm_count,
            )
            for v in topology.vnets
        ],
        errors=topology.errors,
        fetched_at=topology.fetched_at,
    )
