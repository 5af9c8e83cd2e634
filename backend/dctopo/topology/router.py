from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse, Response

from dctopo.azure import resources
from dctopo.azure.arm_client import AzureArmClient
from dctopo.settings import settings
from dctopo.topology import service as topology_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/azure-dc", tags=["azure-dc"])


def _not_configured(message: str = "Azure DC not configured") -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"configured": False, "message": message, "missing": list(settings.azure_missing_envs)},
    )


def _upstream_error(action: str, exc: HTTPException) -> JSONResponse:
    logger.error("Azure DC %s error: %s", action, exc.detail)
    return JSONResponse(status_code=502, content={"error": f"Failed to fetch {action}", "detail": exc.detail})


@router.get("/test")
def azure_dc_test():
    """List VNets to verify credentials and Reader permissions."""
    if not settings.azure_configured:
        return _not_configured(
            "Azure DC not configured (missing AZURE_SUBSCRIPTION_ID or Azure credentials)"
        )
    try:
        found = resources.check_connection(AzureArmClient())
    except HTTPException as exc:
        logger.error("Azure DC test error: %s", exc.detail)
        return JSONResponse(
            status_code=500,
            content={"configured": True, "success": False, "error": "Failed to connect to Azure ARM API"},
        )
    return {"configured": True, "success": True, "vnets_found": found}


@router.get("/topology")
def azure_dc_topology(
    refresh: bool = Query(False, description="Bypass the cache and query ARM again"),
):
    if not settings.azure_configured:
        return _not_configured()
    cached = topology_service.get_topology(force_refresh=refresh)
    payload = cached.result.topology.model_dump()
    payload.update({"data_source": cached.data_source, "cached_at": cached.cached_at})
    return payload


@router.get("/summary")
def azure_dc_summary():
    if not settings.azure_configured:
        return _not_configured()
    cached = topology_service.get_topology()
    payload = topology_service.summarize(cached.result).model_dump()
    payload.update({"data_source": cached.data_source, "cached_at": cached.cached_at})
    return payload


@router.get("/diagram")
def azure_dc_diagram(refresh: bool = Query(False)):
    if not settings.azure_configured:
        return _not_configured()
    cached = topology_service.get_topology(force_refresh=refresh)
    return cached.result.diagram.model_dump()


@router.get("/diagram.svg")
def azure_dc_diagram_svg(refresh: bool = Query(False)):
    if not settings.azure_configured:
        return _not_configured()
    cached = topology_service.get_topology(force_refresh=refresh)
    return Response(content=cached.result.diagram.svg, media_type="image/svg+xml")


@router.get("/vnets")
def azure_dc_vnets():
    if not settings.azure_configured:
        return _not_configured()
    try:
        vnets = resources.list_virtual_networks(AzureArmClient())
    except HTTPException as exc:
        return _upstream_error("virtual networks", exc)
    return {"count": len(vnets), "vnets": [v.model_dump() for v in vnets]}


@router.get("/vms")
def azure_dc_vms():
    if not settings.azure_configured:
        return _not_configured()
    try:
        vms = resources.list_virtual_machines(AzureArmClient())
    except HTTPException as exc:
        return _upstream_error("virtual machines", exc)
    return {"count": len(vms), "vms": [v.model_dump() for v in vms]}


@router.get("/nsgs")
def azure_dc_nsgs():
    if not settings.azure_configured:
        return _not_configured()
    try:
        nsgs = resources.list_network_security_groups(AzureArmClient())
    except HTTPException as exc:
        return _upstream_error("NSGs", exc)
    return {"count": len(nsgs), "nsgs": [n.model_dump() for n in nsgs]}
