from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dctopo.azure.models import AzureNSG, AzurePeering, AzureSubnet, AzureVM, AzureVNet


class TopologySubnet(BaseModel):
    subnet: AzureSubnet
    vms: List[AzureVM] = Field(default_factory=list)
    nsg: Optional[AzureNSG] = None


class TopologyVNet(BaseModel):
    vnet: AzureVNet
    subnets: List[TopologySubnet] = Field(default_factory=list)
    vm_count: int = 0


class TopologyStats(BaseModel):
    total_vms: int = 0
    running_vms: int = 0
    deallocated_vms: int = 0
    stopped_vms: int = 0
    other_vms: int = 0
    total_vnets: int = 0
    total_subnets: int = 0
    total_nsgs: int = 0
    total_public_ips: int = 0
    total_load_balancers: int = 0
    total_route_tables: int = 0
    peering_count: int = 0
    vms_by_os: Dict[str, int] = Field(default_factory=dict)
    vms_by_size: Dict[str, int] = Field(default_factory=dict)
    vms_by_location: Dict[str, int] = Field(default_factory=dict)


class BuiltTopology(BaseModel):
    vnets: List[TopologyVNet] = Field(default_factory=list)
    orphaned_vms: List[AzureVM] = Field(default_factory=list)
    peerings: List[AzurePeering] = Field(default_factory=list)
    stats: TopologyStats = Field(default_factory=TopologyStats)
    errors: List[str] = Field(default_factory=list)
    fetched_at: str = ""


class Diagram(BaseModel):
    svg: str = ""
    width: float = 0
    height: float = 0


class TopologyResult(BaseModel):
    topology: BuiltTopology
    diagram: Diagram


class VNetSummary(BaseModel):
    name: str
    location: str
    subnets: int
    vms: int


class TopologySummary(BaseModel):
    stats: TopologyStats
    vnets: List[VNetSummary] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    fetched_at: str = ""
