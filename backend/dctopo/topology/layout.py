"""Deterministic placement of the topology on a multi-column canvas.

VNets are packed greedily: each one goes to the column that is currently
the shortest (lowest index on ties), in the order the builder sorted them.
Everything here is plain arithmetic on the input, so the same topology
always yields the same geometry.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from dctopo.azure.models import AzureNSG, AzurePeering, AzureSubnet, AzureVM, AzureVNet
from dctopo.topology.models import TopologySubnet, TopologyVNet
from dctopo.utils.ids import normalize_id

VNET_WIDTH = 480
VNET_MARGIN = 40
VNET_PADDING = 20
VNET_HEADER = 60
VNET_EMPTY_FLOOR = 40
SUBNET_MARGIN = 12
SUBNET_HEADER = 48
SUBNET_INSET = 14
VM_INSET = 10
VM_WIDTH = 82
VM_HEIGHT = 56
VM_MARGIN = 8
VMS_PER_ROW = 5
DEFAULT_COLUMNS = 2


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def top_center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y

    @property
    def bottom_center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height


@dataclass(frozen=True)
class VMNode:
    vm: AzureVM
    box: Box


@dataclass(frozen=True)
class SubnetNode:
    subnet: AzureSubnet
    nsg: Optional[AzureNSG]
    box: Box
    vms: List[VMNode] = field(default_factory=list)


@dataclass(frozen=True)
class VNetNode:
    vnet: AzureVNet
    column: int
    box: Box
    vm_count: int = 0
    subnets: List[SubnetNode] = field(default_factory=list)


@dataclass(frozen=True)
class Connector:
    peering: AzurePeering
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class Geometry:
    width: float = 0
    height: float = 0
    vnets: List[VNetNode] = field(default_factory=list)
    connectors: List[Connector] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.vnets


def _rows(vm_total: int) -> int:
    return max(1, math.ceil(vm_total / VMS_PER_ROW))


def subnet_height(vm_total: int) -> int:
    return SUBNET_HEADER + _rows(vm_total) * (VM_HEIGHT + VM_MARGIN) + VM_MARGIN


def vnet_height(topo: TopologyVNet) -> int:
    height = VNET_HEADER + VNET_PADDING
    for sub in topo.subnets:
        height += subnet_height(len(sub.vms)) + SUBNET_MARGIN
    if not topo.subnets:
        height += VNET_EMPTY_FLOOR
    return height + VNET_PADDING


def _place_vms(sub: TopologySubnet, subnet_x: float, subnet_y: float) -> List[VMNode]:
    nodes = []
    for idx, vm in enumerate(sub.vms):
        row, col = divmod(idx, VMS_PER_ROW)
        x = subnet_x + VM_INSET + col * (VM_WIDTH + VM_MARGIN)
        y = subnet_y + SUBNET_HEADER + row * (VM_HEIGHT + VM_MARGIN)
        nodes.append(VMNode(vm=vm, box=Box(x, y, VM_WIDTH, VM_HEIGHT)))
    return nodes


def _place_subnets(topo: TopologyVNet, x: float, y: float) -> List[SubnetNode]:
    nodes = []
    subnet_x = x + SUBNET_INSET
    subnet_w = VNET_WIDTH - 2 * SUBNET_INSET
    subnet_y = y + VNET_HEADER + VNET_PADDING
    for sub in topo.subnets:
        h = subnet_height(len(sub.vms))
        nodes.append(
            SubnetNode(
                subnet=sub.subnet,
                nsg=sub.nsg,
                box=Box(subnet_x, subnet_y, subnet_w, h),
                vms=_place_vms(sub, subnet_x, subnet_y),
            )
        )
        subnet_y += h + SUBNET_MARGIN
    return nodes


def _connectors(peerings: Sequence[AzurePeering], boxes: Dict[str, Box]) -> List[Connector]:
    connectors = []
    for peering in peerings:
        source = boxes.get(normalize_id(peering.vnet_id))
        target = boxes.get(normalize_id(peering.remote_vnet_id))
        if source is None or target is None:
            continue
        x1, y1 = source.bottom_center
        x2, y2 = target.top_center
        connectors.append(Connector(peering=peering, x1=x1, y1=y1, x2=x2, y2=y2))
    return connectors


def layout(
    vnets: Sequence[TopologyVNet],
    peerings: Sequence[AzurePeering] = (),
    columns: int = DEFAULT_COLUMNS,
) -> Geometry:
    """Place *vnets* (already sorted) and draw one connector per peering.

    Connectors run from the declaring VNet's bottom centre to the remote
    VNet's top centre, even when the remote box sits higher on the canvas.
    Peerings to VNets that were not placed are skipped.
    """
    if columns < 1:
        raise ValueError(f"columns must be >= 1 (got {columns})")
    if not vnets:
        return Geometry()

    col_heights = [VNET_MARGIN] * columns
    nodes: List[VNetNode] = []
    boxes: Dict[str, Box] = {}

    for topo in vnets:
        height = vnet_height(topo)
        col = min(range(columns), key=lambda c: (col_heights[c], c))
        x = VNET_MARGIN + col * (VNET_WIDTH + VNET_MARGIN)
        y = col_heights[col]
        box = Box(x, y, VNET_WIDTH, height)
        col_heights[col] = y + height + VNET_MARGIN

        boxes.setdefault(normalize_id(topo.vnet.id), box)
        nodes.append(
            VNetNode(
                vnet=topo.vnet,
                column=col,
                box=box,
                vm_count=topo.vm_count,
                subnets=_place_subnets(topo, x, y),
            )
        )

    return Geometry(
        width=columns * (VNET_WIDTH + VNET_MARGIN) + VNET_MARGIN,
        height=max(col_heights) + VNET_MARGIN,
        vnets=nodes,
        connectors=_connectors(peerings, boxes),
    )
