from typing import List, Optional

from pydantic import BaseModel, Field


class AzureVM(BaseModel):
    id: str
    name: str
    resource_group: str = "unknown"
    location: str = ""
    vm_size: str = ""
    os_type: str = "Unknown"
    power_state: str = "unknown"
    nic_ids: List[str] = Field(default_factory=list)
    private_ip: str = ""
    public_ip: Optional[str] = None
    subnet_id: Optional[str] = None


class AzurePeering(BaseModel):
    name: str
    peering_state: str = ""
    remote_vnet_id: str
    allow_forwarding: bool = False
    allow_gateway_transit: bool = False
    # Declaring VNet; filled in on the deduplicated peering list.
    vnet_id: Optional[str] = None


class AzureSubnet(BaseModel):
    id: str
    name: str
    address_prefix: str = ""
    nsg_id: Optional[str] = None
    route_table_id: Optional[str] = None


class AzureVNet(BaseModel):
    id: str
    name: str
    resource_group: str = "unknown"
    location: str = ""
    address_prefixes: List[str] = Field(default_factory=list)
    subnets: List[AzureSubnet] = Field(default_factory=list)
    peerings: List[AzurePeering] = Field(default_factory=list)


class NICIPConfiguration(BaseModel):
    private_ip: Optional[str] = None
    subnet_id: Optional[str] = None
    public_ip_id: Optional[str] = None


class AzureNIC(BaseModel):
    id: str
    name: str = ""
    ip_configurations: List[NICIPConfiguration] = Field(default_factory=list)


class NSGRule(BaseModel):
    name: str
    direction: str = ""
    access: str = ""
    protocol: str = "*"
    port_range: str = "*"
    priority: int = 0


class AzureNSG(BaseModel):
    id: str
    name: str
    resource_group: str = "unknown"
    rules: List[NSGRule] = Field(default_factory=list)


class AzurePublicIP(BaseModel):
    id: str
    name: str = ""
    ip_address: Optional[str] = None
    allocation_method: str = ""


class AzureLoadBalancer(BaseModel):
    id: str
    name: str
    location: str = ""
    frontend_count: int = 0
    backend_pool_count: int = 0


class AzureRouteTable(BaseModel):
    id: str
    name: str
    route_count: int = 0


class RawTopology(BaseModel):
    """Best-effort inventory snapshot; ``errors`` lists the listings that failed."""

    vnets: List[AzureVNet] = Field(default_factory=list)
    vms: List[AzureVM] = Field(default_factory=list)
    nics: List[AzureNIC] = Field(default_factory=list)
    nsgs: List[AzureNSG] = Field(default_factory=list)
    public_ips: List[AzurePublicIP] = Field(default_factory=list)
    load_balancers: List[AzureLoadBalancer] = Field(default_factory=list)
    route_tables: List[AzureRouteTable] = Field(default_factory=list)
    subscription_id: str = ""
    errors: List[str] = Field(default_factory=list)
    fetched_at: str = ""
