from __future__ import annotations

from dctopo.azure.models import AzureNIC, AzurePublicIP, AzureVM, NICIPConfiguration
from dctopo.topology.correlator import enrich

NIC_BASE = "/subscriptions/sub/resourcegroups/rg/providers/microsoft.network/networkinterfaces"


def _vm(name: str, *nic_names: str) -> AzureVM:
    return AzureVM(
        id=f"/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/{name}",
        name=name,
        nic_ids=[f"{NIC_BASE}/{n}" for n in nic_names],
    )


def _nic(name: str, *configs: NICIPConfiguration) -> AzureNIC:
    return AzureNIC(id=f"{NIC_BASE}/{name}", name=name, ip_configurations=list(configs))


def test_private_ip_and_subnet_first_match_wins():
    vm = _vm("vm1", "nic-a", "nic-b")
    nics = [
        _nic(
            "nic-a",
            NICIPConfiguration(private_ip=None, subnet_id=None),
            NICIPConfiguration(private_ip="10.0.0.4", subnet_id="/SUBNETS/FIRST"),
        ),
        _nic("nic-b", NICIPConfiguration(private_ip="10.0.9.9", subnet_id="/subnets/second")),
    ]

    [result] = enrich([vm], nics, [])

    assert result.private_ip == "10.0.0.4"
    assert result.subnet_id == "/subnets/first"


def test_public_ip_last_match_wins():
    vm = _vm("vm1", "nic-a", "nic-b")
    nics = [
        _nic("nic-a", NICIPConfiguration(private_ip="10.0.0.4", public_ip_id="pip-1")),
        _nic("nic-b", NICIPConfiguration(public_ip_id="PIP-2")),
    ]
    public_ips = [
        AzurePublicIP(id="pip-1", ip_address="20.0.0.1"),
        AzurePublicIP(id="pip-2", ip_address="20.0.0.2"),
    ]

    [result] = enrich([vm], nics, public_ips)

    assert result.public_ip == "20.0.0.2"
    assert result.private_ip == "10.0.0.4"


def test_unassigned_public_ip_is_not_applied():
    vm = _vm("vm1", "nic-a")
    nics = [
        _nic(
            "nic-a",
            NICIPConfiguration(public_ip_id="pip-1"),
            NICIPConfiguration(public_ip_id="pip-reserved"),
        )
    ]
    public_ips = [
        AzurePublicIP(id="pip-1", ip_address="20.0.0.1"),
        AzurePublicIP(id="pip-reserved", ip_address=None),
    ]

    [result] = enrich([vm], nics, public_ips)

    assert result.public_ip == "20.0.0.1"


def test_nic_ownership_is_case_insensitive():
    vm = AzureVM(id="vm1", name="vm1", nic_ids=[f"{NIC_BASE}/NIC-A".upper()])
    nic = _nic("nic-a", NICIPConfiguration(private_ip="10.0.0.5"))

    [result] = enrich([vm], [nic], [])

    assert result.private_ip == "10.0.0.5"


def test_unmatched_nics_are_ignored():
    vm = _vm("vm1")
    nics = [_nic("orphan-nic", NICIPConfiguration(private_ip="10.0.0.8", subnet_id="/subnets/x"))]

    [result] = enrich([vm], nics, [])

    assert result.private_ip == ""
    assert result.subnet_id is None
    assert result.public_ip is None


def test_inputs_are_not_mutated():
    vm = _vm("vm1", "nic-a")
    nic = _nic("nic-a", NICIPConfiguration(private_ip="10.0.0.4", subnet_id="/subnets/a"))

    enrich([vm], [nic], [])

    assert vm.private_ip == ""
    assert vm.subnet_id is None


def test_empty_collections():
    assert enrich([], [], []) == []
