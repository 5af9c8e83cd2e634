"""Assemble the VNet → Subnet → VM hierarchy from a resource inventory."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Set, Tuple

from dctopo.azure.models import (
    AzureLoadBalancer,
    AzureNSG,
    AzurePeering,
    AzurePublicIP,
    AzureRouteTable,
    AzureVM,
    AzureVNet,
    RawTopology,
)
from dctopo.topology.correlator import enrich
from dctopo.topology.models import BuiltTopology, TopologyStats, TopologySubnet, TopologyVNet
from dctopo.utils.ids import normalize_id

logger = logging.getLogger(__name__)

_UNKNOWN = "Unknown"


def _index_vms_by_subnet(vms: Sequence[AzureVM]) -> Dict[str, List[AzureVM]]:
    index: Dict[str, List[AzureVM]] = {}
    for vm in vms:
        key = normalize_id(vm.subnet_id)
        if key:
            index.setdefault(key, []).append(vm)
    return index


def _unique_vnets(vnets: Sequence[AzureVNet]) -> List[AzureVNet]:
    """Drop repeated VNets (overlapping pages, id case drift); the first copy wins."""
    unique: Dict[str, AzureVNet] = {}
    for vnet in vnets:
        unique.setdefault(normalize_id(vnet.id), vnet)
    if len(unique) < len(vnets):
        logger.debug("Ignored %s duplicate VNet records", len(vnets) - len(unique))
    return list(unique.values())


def _dedupe_peerings(vnets: Sequence[AzureVNet]) -> List[AzurePeering]:
    """One undirected peering per VNet pair; ARM reports one record per side."""
    peerings: List[AzurePeering] = []
    seen: Set[Tuple[str, ...]] = set()
    for vnet in vnets:
        vnet_id = normalize_id(vnet.id)
        for peering in vnet.peerings:
            key = tuple(sorted((vnet_id, normalize_id(peering.remote_vnet_id))))
            if key in seen:
                continue
            seen.add(key)
            peerings.append(peering.model_copy(update={"vnet_id": vnet_id}))
    return peerings


def _bucket(value: Optional[str]) -> str:
    return value or _UNKNOWN


def _compute_stats(
    vnets: Sequence[AzureVNet],
    vms: Sequence[AzureVM],
    nsgs: Sequence[AzureNSG],
    public_ips: Sequence[AzurePublicIP],
    load_balancers: Sequence[AzureLoadBalancer],
    route_tables: Sequence[AzureRouteTable],
    peering_count: int,
) -> TopologyStats:
    states = Counter(vm.power_state for vm in vms)
    total = len(vms)
    running = states.get("running", 0)
    deallocated = states.get("deallocated", 0)
    stopped = states.get("stopped", 0)

    return TopologyStats(
        total_vms=total,
        running_vms=running,
        deallocated_vms=deallocated,
        stopped_vms=stopped,
        other_vms=total - running - deallocated - stopped,
        total_vnets=len(vnets),
        total_subnets=sum(len(v.subnets) for v in vnets),
        total_nsgs=len(nsgs),
        total_public_ips=sum(1 for ip in public_ips if ip.ip_address),
        total_load_balancers=len(load_balancers),
        total_route_tables=len(route_tables),
        peering_count=peering_count,
        vms_by_os=dict(Counter(_bucket(vm.os_type) for vm in vms)),
        vms_by_size=dict(Counter(_bucket(vm.vm_size) for vm in vms)),
        vms_by_location=dict(Counter(_bucket(vm.location) for vm in vms)),
    )


def build_topology(
    vnets: Sequence[AzureVNet],
    vms: Sequence[AzureVM],
    nsgs: Sequence[AzureNSG],
    *,
    public_ips: Sequence[AzurePublicIP] = (),
    load_balancers: Sequence[AzureLoadBalancer] = (),
    route_tables: Sequence[AzureRouteTable] = (),
    errors: Sequence[str] = (),
    fetched_at: str = "",
) -> BuiltTopology:
    """Build the hierarchy, orphan list, deduplicated peerings and stats.

    VMs must already carry their subnet id (see :func:`enrich`). VNets come
    back sorted by VM count descending, then by name, so the layout is
    reproducible. Missing references resolve to ``None``; nothing here
    raises for incomplete data.
    """
    vnets = _unique_vnets(vnets)
    subnet_vms = _index_vms_by_subnet(vms)
    nsg_map = {normalize_id(nsg.id): nsg for nsg in nsgs}

    topo_vnets: List[TopologyVNet] = []
    attached: Set[str] = set()
    for vnet in vnets:
        topo_subnets: List[TopologySubnet] = []
        for subnet in vnet.subnets:
            # a VM lands in at most one subnet, even if a subnet is listed twice
            members = [
                vm for vm in subnet_vms.get(normalize_id(subnet.id), []) if normalize_id(vm.id) not in attached
            ]
            attached.update(normalize_id(vm.id) for vm in members)
            topo_subnets.append(
                TopologySubnet(
                    subnet=subnet,
                    vms=members,
                    nsg=nsg_map.get(normalize_id(subnet.nsg_id)) if subnet.nsg_id else None,
                )
            )
        topo_vnets.append(
            TopologyVNet(
                vnet=vnet,
                subnets=topo_subnets,
                vm_count=sum(len(s.vms) for s in topo_subnets),
            )
        )

    topo_vnets.sort(key=lambda t: (-t.vm_count, t.vnet.name))

    orphaned = [vm for vm in vms if normalize_id(vm.id) not in attached]
    peerings = _dedupe_peerings(vnets)
    stats = _compute_stats(vnets, vms, nsgs, public_ips, load_balancers, route_tables, len(peerings))

    if orphaned:
        logger.info("%s of %s VMs could not be placed in a known subnet", len(orphaned), len(vms))

    return BuiltTopology(
        vnets=topo_vnets,
        orphaned_vms=orphaned,
        peerings=peerings,
        stats=stats,
        errors=list(errors),
        fetched_at=fetched_at,
    )


def build_from_raw(raw: RawTopology) -> BuiltTopology:
    """Correlate NICs/public IPs onto the VMs, then build the topology."""
    vms = enrich(raw.vms, raw.nics, raw.public_ips)
    return build_topology(
        raw.vnets,
        vms,
        raw.nsgs,
        public_ips=raw.public_ips,
        load_balancers=raw.load_balancers,
        route_tables=raw.route_tables,
        errors=raw.errors,
        fetched_at=raw.fetched_at,
    )
