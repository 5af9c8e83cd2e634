"""Resource inventory: ARM listings mapped onto the topology models.

Every listing is subscription-scoped. ``fetch_raw_topology`` runs them in
parallel and isolates failures per resource type so a single broken
provider never blanks the whole diagram.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException

from dctopo.azure.arm_client import AzureArmClient
from dctopo.azure.models import (
    AzureLoadBalancer,
    AzureNIC,
    AzureNSG,
    AzurePeering,
    AzurePublicIP,
    AzureRouteTable,
    AzureSubnet,
    AzureVM,
    AzureVNet,
    NICIPConfiguration,
    NSGRule,
    RawTopology,
)
from dctopo.settings import settings
from dctopo.utils.ids import extract_resource_group, extract_resource_name, normalize_id

logger = logging.getLogger(__name__)


def _props(payload: Dict[str, Any]) -> Dict[str, Any]:
    props = payload.get("properties") if isinstance(payload, dict) else None
    return props if isinstance(props, dict) else {}


def _ref_id(value: Any) -> Optional[str]:
    """Return the normalized ``id`` of an ARM sub-resource reference, if any."""
    if isinstance(value, dict) and value.get("id"):
        return normalize_id(value.get("id"))
    return None


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _resource_group(resource_id: Optional[str]) -> str:
    return extract_resource_group(resource_id) or "unknown"


def _power_state_code(payload: Dict[str, Any]) -> Optional[str]:
    instance_view = _props(payload).get("instanceView")
    statuses = instance_view.get("statuses") if isinstance(instance_view, dict) else None
    for status in _dicts(statuses):
        code = status.get("code")
        if isinstance(code, str) and code.startswith("PowerState/"):
            return code.split("/", 1)[1].strip().lower() or None
    return None


def _subscription_path(client: AzureArmClient, provider: str) -> str:
    return f"/subscriptions/{client.subscription_id}/providers/{provider}"


def _list_network(client: AzureArmClient, resource_type: str) -> List[dict]:
    path = _subscription_path(client, f"Microsoft.Network/{resource_type}")
    return client.arm_get_paged(path, params={"api-version": client.network_api_version})


def _build_vm(vm: Dict[str, Any], power_states: Dict[str, str]) -> AzureVM:
    props = _props(vm)
    hardware = props.get("hardwareProfile") or {}
    storage = props.get("storageProfile") or {}
    os_disk = storage.get("osDisk") if isinstance(storage, dict) else None
    network_profile = props.get("networkProfile") or {}

    nic_ids: List[str] = []
    for nic in _dicts(network_profile.get("networkInterfaces")):
        nic_id = normalize_id(nic.get("id"))
        if nic_id:
            nic_ids.append(nic_id)

    vm_id = str(vm.get("id") or "")
    os_type = os_disk.get("osType") if isinstance(os_disk, dict) else None
    return AzureVM(
        id=vm_id,
        name=str(vm.get("name") or extract_resource_name(vm_id) or ""),
        resource_group=_resource_group(vm_id),
        location=str(vm.get("location") or ""),
        vm_size=str(hardware.get("vmSize") or ""),
        os_type=str(os_type or "Unknown"),
        power_state=power_states.get(normalize_id(vm_id), "unknown"),
        nic_ids=nic_ids,
    )


def list_virtual_machines(client: AzureArmClient) -> List[AzureVM]:
    path = _subscription_path(client, "Microsoft.Compute/virtualMachines")
    raw_vms = client.arm_get_paged(path, params={"api-version": client.compute_api_version})
    # $expand=instanceView is not available at subscription scope; statusOnly is.
    status_vms = client.arm_get_paged(
        path,
        params={"api-version": client.compute_api_version, "statusOnly": "true"},
    )

    power_states: Dict[str, str] = {}
    for entry in status_vms:
        code = _power_state_code(entry)
        if code and entry.get("id"):
            power_states[normalize_id(entry.get("id"))] = code

    return [_build_vm(vm, power_states) for vm in raw_vms if isinstance(vm, dict)]


def _build_peering(peering: Dict[str, Any]) -> Optional[AzurePeering]:
    props = _props(peering)
    remote_id = _ref_id(props.get("remoteVirtualNetwork"))
    if not remote_id:
        return None
    return AzurePeering(
        name=str(peering.get("name") or ""),
        peering_state=str(props.get("peeringState") or ""),
        remote_vnet_id=remote_id,
        allow_forwarding=bool(props.get("allowForwardedTraffic", False)),
        allow_gateway_transit=bool(props.get("allowGatewayTransit", False)),
    )


def _build_vnet(vnet: Dict[str, Any]) -> AzureVNet:
    props = _props(vnet)
    address_space = props.get("addressSpace") or {}
    prefixes = address_space.get("addressPrefixes") if isinstance(address_space, dict) else None

    subnets = []
    for subnet in _dicts(props.get("subnets")):
        subnet_props = _props(subnet)
        prefix = subnet_props.get("addressPrefix")
        if not prefix and isinstance(subnet_props.get("addressPrefixes"), list):
            prefix = ", ".join(str(p) for p in subnet_props["addressPrefixes"])
        subnets.append(
            AzureSubnet(
                id=normalize_id(subnet.get("id")),
                name=str(subnet.get("name") or ""),
                address_prefix=str(prefix or ""),
                nsg_id=_ref_id(subnet_props.get("networkSecurityGroup")),
                route_table_id=_ref_id(subnet_props.get("routeTable")),
            )
        )

    peerings = []
    for raw_peering in _dicts(props.get("virtualNetworkPeerings")):
        peering = _build_peering(raw_peering)
        if peering is not None:
            peerings.append(peering)

    vnet_id = str(vnet.get("id") or "")
    return AzureVNet(
        id=normalize_id(vnet_id),
        name=str(vnet.get("name") or extract_resource_name(vnet_id) or ""),
        resource_group=_resource_group(vnet_id),
        location=str(vnet.get("location") or ""),
        address_prefixes=[str(p) for p in prefixes or [] if p],
        subnets=subnets,
        peerings=peerings,
    )


def list_virtual_networks(client: AzureArmClient) -> List[AzureVNet]:
    return [_build_vnet(vnet) for vnet in _list_network(client, "virtualNetworks") if isinstance(vnet, dict)]


def _build_nic(nic: Dict[str, Any]) -> AzureNIC:
    configs = []
    for entry in _dicts(_props(nic).get("ipConfigurations")):
        ip_props = _props(entry)
        configs.append(
            NICIPConfiguration(
                private_ip=ip_props.get("privateIPAddress") or None,
                subnet_id=_ref_id(ip_props.get("subnet")),
                public_ip_id=_ref_id(ip_props.get("publicIPAddress")),
            )
        )
    return AzureNIC(
        id=normalize_id(nic.get("id")),
        name=str(nic.get("name") or ""),
        ip_configurations=configs,
    )


def list_network_interfaces(client: AzureArmClient) -> List[AzureNIC]:
    return [_build_nic(nic) for nic in _list_network(client, "networkInterfaces") if isinstance(nic, dict)]


def _port_range(rule_props: Dict[str, Any]) -> str:
    single = rule_props.get("destinationPortRange")
    if single:
        return str(single)
    ranges = rule_props.get("destinationPortRanges")
    if isinstance(ranges, list) and ranges:
        return ", ".join(str(r) for r in ranges)
    return "*"


def _build_nsg(nsg: Dict[str, Any]) -> AzureNSG:
    rules = []
    for rule in _dicts(_props(nsg).get("securityRules")):
        rule_props = _props(rule)
        priority = rule_props.get("priority")
        rules.append(
            NSGRule(
                name=str(rule.get("name") or ""),
                direction=str(rule_props.get("direction") or ""),
                access=str(rule_props.get("access") or ""),
                protocol=str(rule_props.get("protocol") or "*"),
                port_range=_port_range(rule_props),
                priority=int(priority) if isinstance(priority, (int, float)) else 0,
            )
        )
    rules.sort(key=lambda r: r.priority)
    nsg_id = str(nsg.get("id") or "")
    return AzureNSG(
        id=normalize_id(nsg_id),
        name=str(nsg.get("name") or ""),
        resource_group=_resource_group(nsg_id),
        rules=rules,
    )


def list_network_security_groups(client: AzureArmClient) -> List[AzureNSG]:
    return [_build_nsg(nsg) for nsg in _list_network(client, "networkSecurityGroups") if isinstance(nsg, dict)]


def list_public_ip_addresses(client: AzureArmClient) -> List[AzurePublicIP]:
    result = []
    for ip in _list_network(client, "publicIPAddresses"):
        if not isinstance(ip, dict):
            continue
        props = _props(ip)
        result.append(
            AzurePublicIP(
                id=normalize_id(ip.get("id")),
                name=str(ip.get("name") or ""),
                ip_address=props.get("ipAddress") or None,
                allocation_method=str(props.get("publicIPAllocationMethod") or ""),
            )
        )
    return result


def list_load_balancers(client: AzureArmClient) -> List[AzureLoadBalancer]:
    result = []
    for lb in _list_network(client, "loadBalancers"):
        if not isinstance(lb, dict):
            continue
        props = _props(lb)
        result.append(
            AzureLoadBalancer(
                id=normalize_id(lb.get("id")),
                name=str(lb.get("name") or ""),
                location=str(lb.get("location") or ""),
                frontend_count=len(_dicts(props.get("frontendIPConfigurations"))),
                backend_pool_count=len(_dicts(props.get("backendAddressPools"))),
            )
        )
    return result


def list_route_tables(client: AzureArmClient) -> List[AzureRouteTable]:
    result = []
    for rt in _list_network(client, "routeTables"):
        if not isinstance(rt, dict):
            continue
        result.append(
            AzureRouteTable(
                id=normalize_id(rt.get("id")),
                name=str(rt.get("name") or ""),
                route_count=len(_dicts(_props(rt).get("routes"))),
            )
        )
    return result


# label -> (RawTopology field, listing)
_LISTINGS: Dict[str, tuple[str, Callable[[AzureArmClient], list]]] = {
    "Virtual Machines": ("vms", list_virtual_machines),
    "Virtual Networks": ("vnets", list_virtual_networks),
    "Network Interfaces": ("nics", list_network_interfaces),
    "NSGs": ("nsgs", list_network_security_groups),
    "Public IPs": ("public_ips", list_public_ip_addresses),
    "Load Balancers": ("load_balancers", list_load_balancers),
    "Route Tables": ("route_tables", list_route_tables),
}


def _failure_text(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        return str(exc.detail)
    return str(exc) or exc.__class__.__name__


def fetch_raw_topology(client: Optional[AzureArmClient] = None) -> RawTopology:
    """Fetch every resource type concurrently; failures land in ``errors``."""
    client = client or AzureArmClient()
    collected: Dict[str, list] = {field: [] for field, _ in _LISTINGS.values()}
    failures: Dict[str, str] = {}

    max_workers = min(settings.azure_fetch_max_workers, len(_LISTINGS))
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        futures = {ex.submit(listing, client): label for label, (_, listing) in _LISTINGS.items()}
        for fut in as_completed(futures):
            label = futures[fut]
            field = _LISTINGS[label][0]
            try:
                collected[field] = fut.result()
            except Exception as exc:
                failures[label] = _failure_text(exc)
                logger.warning("Azure DC %s failed: %s", label, failures[label])

    # Keep error order stable regardless of completion order.
    errors = [f"{label}: {failures[label]}" for label in _LISTINGS if label in failures]
    return RawTopology(
        **collected,
        subscription_id=client.subscription_id,
        errors=errors,
        fetched_at=datetime.now(timezone.utc).isoformat(),
    )


def check_connection(client: Optional[AzureArmClient] = None) -> int:
    """Return the number of VNets visible to the configured credentials."""
    client = client or AzureArmClient()
    return len(list_virtual_networks(client))
