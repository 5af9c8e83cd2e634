"""Join VM, NIC and public IP collections.

ARM declares NIC ownership on the VM (``networkProfile.networkInterfaces``),
so the NIC → VM index is built from the VMs. Private IP and subnet are taken
from the first IP configuration that carries them; the public IP is
overwritten by every configuration that resolves one.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from dctopo.azure.models import AzureNIC, AzurePublicIP, AzureVM
from dctopo.utils.ids import normalize_id

logger = logging.getLogger(__name__)


def enrich(
    vms: Sequence[AzureVM],
    nics: Sequence[AzureNIC],
    public_ips: Sequence[AzurePublicIP],
) -> List[AzureVM]:
    """Return copies of *vms* with private IP, subnet and public IP filled in."""
    enriched = [vm.model_copy(deep=True) for vm in vms]

    nic_owner: Dict[str, AzureVM] = {}
    for vm in enriched:
        for nic_id in vm.nic_ids:
            key = normalize_id(nic_id)
            if key:
                nic_owner.setdefault(key, vm)

    public_ip_map: Dict[str, str] = {}
    for ip in public_ips:
        if ip.ip_address:
            public_ip_map[normalize_id(ip.id)] = ip.ip_address

    unmatched = 0
    for nic in nics:
        vm = nic_owner.get(normalize_id(nic.id))
        if vm is None:
            unmatched += 1
            continue
        for config in nic.ip_configurations:
            if config.private_ip and not vm.private_ip:
                vm.private_ip = config.private_ip
            if config.subnet_id and not vm.subnet_id:
                vm.subnet_id = normalize_id(config.subnet_id)
            if config.public_ip_id:
                address = public_ip_map.get(normalize_id(config.public_ip_id))
                if address:
                    vm.public_ip = address

    if unmatched:
        logger.debug("Ignored %s NICs without an owning VM", unmatched)
    return enriched
