from __future__ import annotations

from types import SimpleNamespace

from fastapi import HTTPException

from dctopo.azure import resources
from dctopo.azure.models import (
    AzureNIC,
    AzureNSG,
    AzurePeering,
    AzureSubnet,
    AzureVM,
    AzureVNet,
    NICIPConfiguration,
    RawTopology,
)
from dctopo.topology import router as topology_router
from dctopo.topology import service as topology_service


def _configure(monkeypatch, configured: bool = True):
    missing = [] if configured else ["AZURE_TENANT_ID", "AZURE_CLIENT_SECRET"]
    monkeypatch.setattr(
        topology_router,
        "settings",
        SimpleNamespace(azure_configured=configured, azure_missing_envs=missing),
    )
    monkeypatch.setattr(topology_service, "settings", SimpleNamespace(topology_columns=2))


def _raw_topology() -> RawTopology:
    subnet = AzureSubnet(id="/vnets/hub/subnets/app", name="app", address_prefix="10.0.1.0/24", nsg_id="/nsgs/app")
    hub = AzureVNet(
        id="/vnets/hub",
        name="hub",
        location="eastus",
        subnets=[subnet],
        peerings=[AzurePeering(name="hub-spoke", peering_state="Connected", remote_vnet_id="/vnets/spoke")],
    )
    spoke = AzureVNet(id="/vnets/spoke", name="spoke", location="eastus")
    vms = [
        AzureVM(id="/vms/web", name="web", power_state="running", nic_ids=["/nics/web"]),
        AzureVM(id="/vms/lonely", name="lonely", power_state="deallocated"),
    ]
    nics = [AzureNIC(id="/nics/web", ip_configurations=[NICIPConfiguration(private_ip="10.0.1.4", subnet_id=subnet.id)])]
    return RawTopology(
        vnets=[hub, spoke],
        vms=vms,
        nics=nics,
        nsgs=[AzureNSG(id="/nsgs/app", name="nsg-app")],
        subscription_id="sub",
        errors=["Load Balancers: Azure ARM error (403): forbidden"],
        fetched_at="2024-01-01T00:00:00+00:00",
    )


def _stub_fetch(monkeypatch):
    calls = {"count": 0}

    def fake_fetch(client=None):
        calls["count"] += 1
        return _raw_topology()

    monkeypatch.setattr(resources, "fetch_raw_topology", fake_fetch)
    return calls


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_topology_requires_configuration(client, monkeypatch):
    _configure(monkeypatch, configured=False)

    response = client.get("/api/azure-dc/topology")

    assert response.status_code == 503
    body = response.json()
    assert body["configured"] is False
    assert body["missing"] == ["AZURE_TENANT_ID", "AZURE_CLIENT_SECRET"]


def test_every_route_reports_missing_configuration(client, monkeypatch):
    _configure(monkeypatch, configured=False)

    for path in ("/test", "/summary", "/diagram", "/diagram.svg", "/vnets", "/vms", "/nsgs"):
        assert client.get(f"/api/azure-dc{path}").status_code == 503


def test_topology_live_then_cached(client, monkeypatch):
    _configure(monkeypatch)
    calls = _stub_fetch(monkeypatch)

    first = client.get("/api/azure-dc/topology")
    second = client.get("/api/azure-dc/topology")

    assert first.status_code == 200
    assert first.json()["data_source"] == "live"
    assert second.json()["data_source"] == "cache"
    assert second.json()["cached_at"] == first.json()["cached_at"]
    assert calls["count"] == 1


def test_topology_refresh_bypasses_cache(client, monkeypatch):
    _configure(monkeypatch)
    calls = _stub_fetch(monkeypatch)

    client.get("/api/azure-dc/topology")
    refreshed = client.get("/api/azure-dc/topology", params={"refresh": "true"})

    assert refreshed.json()["data_source"] == "live"
    assert calls["count"] == 2


def test_topology_payload_shape(client, monkeypatch):
    _configure(monkeypatch)
    _stub_fetch(monkeypatch)

    body = client.get("/api/azure-dc/topology").json()

    assert [v["vnet"]["name"] for v in body["vnets"]] == ["hub", "spoke"]
    hub = body["vnets"][0]
    assert hub["vm_count"] == 1
    assert hub["subnets"][0]["nsg"]["name"] == "nsg-app"
    assert hub["subnets"][0]["vms"][0]["private_ip"] == "10.0.1.4"
    assert [vm["name"] for vm in body["orphaned_vms"]] == ["lonely"]
    assert len(body["peerings"]) == 1
    assert body["peerings"][0]["vnet_id"] == "/vnets/hub"
    assert body["stats"]["total_vms"] == 2
    assert body["stats"]["running_vms"] == 1
    assert body["errors"] == ["Load Balancers: Azure ARM error (403): forbidden"]


def test_summary(client, monkeypatch):
    _configure(monkeypatch)
    _stub_fetch(monkeypatch)

    body = client.get("/api/azure-dc/summary").json()

    assert body["vnets"][0] == {"name": "hub", "location": "eastus", "subnets": 1, "vms": 1}
    assert body["stats"]["peering_count"] == 1
    assert body["fetched_at"] == "2024-01-01T00:00:00+00:00"
    assert body["data_source"] == "live"


def test_diagram_json_and_svg(client, monkeypatch):
    _configure(monkeypatch)
    _stub_fetch(monkeypatch)

    diagram = client.get("/api/azure-dc/diagram").json()
    svg = client.get("/api/azure-dc/diagram.svg")

    assert diagram["svg"].startswith("<svg")
    assert diagram["width"] > 0
    assert svg.status_code == 200
    assert svg.headers["content-type"].startswith("image/svg+xml")
    assert svg.text == diagram["svg"]


def test_connection_check(client, monkeypatch):
    _configure(monkeypatch)
    monkeypatch.setattr(topology_router, "AzureArmClient", lambda: object())
    monkeypatch.setattr(resources, "check_connection", lambda client=None: 3)

    body = client.get("/api/azure-dc/test").json()

    assert body == {"configured": True, "success": True, "vnets_found": 3}


def test_connection_check_failure(client, monkeypatch):
    _configure(monkeypatch)
    monkeypatch.setattr(topology_router, "AzureArmClient", lambda: object())

    def boom(client=None):
        raise HTTPException(status_code=401, detail="Azure auth failed (401): bad secret")

    monkeypatch.setattr(resources, "check_connection", boom)

    response = client.get("/api/azure-dc/test")

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_vnets_listing_upstream_error(client, monkeypatch):
    _configure(monkeypatch)
    monkeypatch.setattr(topology_router, "AzureArmClient", lambda: object())

    def boom(client):
        raise HTTPException(status_code=403, detail="Azure ARM error (403): forbidden")

    monkeypatch.setattr(resources, "list_virtual_networks", boom)

    response = client.get("/api/azure-dc/vnets")

    assert response.status_code == 502
    assert response.json()["detail"] == "Azure ARM error (403): forbidden"


def test_nsgs_listing(client, monkeypatch):
    _configure(monkeypatch)
    monkeypatch.setattr(topology_router, "AzureArmClient", lambda: object())
    monkeypatch.setattr(
        resources,
        "list_network_security_groups",
        lambda client: [AzureNSG(id="/nsgs/a", name="a"), AzureNSG(id="/nsgs/b", name="b")],
    )

    body = client.get("/api/azure-dc/nsgs").json()

    assert body["count"] == 2
    assert [n["name"] for n in body["nsgs"]] == ["a", "b"]


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-Id": "abc-123"})

    assert response.headers["X-Correlation-Id"] == "abc-123"
    assert client.get("/health").headers["X-Correlation-Id"]


def test_svg_response_is_locked_down(client, monkeypatch):
    _configure(monkeypatch)
    _stub_fetch(monkeypatch)

    response = client.get("/api/azure-dc/diagram.svg")

    assert "default-src 'none'" in response.headers["Content-Security-Policy"]
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "Content-Security-Policy" not in client.get("/health").headers
