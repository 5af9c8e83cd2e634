"""Serialize a :class:`~dctopo.topology.layout.Geometry` into standalone SVG.

Names, prefixes and locations come straight from ARM responses, so every
piece of text goes through :func:`escape_xml` before it is written.
Styling lives in one embedded stylesheet; shapes only carry classes.
"""

from __future__ import annotations

import html
from typing import Dict, List, Optional, Tuple

from dctopo.topology.layout import SUBNET_HEADER, VNET_HEADER, Geometry, SubnetNode, VMNode, VNetNode
from dctopo.topology.models import Diagram

VM_NAME_MAX = 11
LABEL_MAX = 40
ELLIPSIS = "…"

POWER_STATE_COLORS: Dict[str, str] = {
    "running": "#10b981",
    "deallocated": "#6b7280",
    "stopped": "#ef4444",
}
POWER_STATE_DEFAULT = "#eab308"

# peering state -> (stroke colour, dash pattern)
PEERING_STYLES: Dict[str, Tuple[str, str]] = {
    "connected": ("#10b981", "8,4"),
    "initiated": ("#eab308", "4,4"),
}
PEERING_DEFAULT = ("#ef4444", "4,4")

_BASE_STYLES = """
    .vnet-box { fill: #0c1322; stroke: #1e293b; stroke-width: 2; }
    .subnet-box { fill: #111827; stroke: #374151; stroke-width: 1; }
    .nsg-badge-box { fill: #064e3b; stroke: #10b981; stroke-width: 1; }
    .vm-box { fill-opacity: 0.12; stroke-width: 1.5; }
    .pub-ip-marker { fill: #3b82f6; }
    .peering-line { stroke-width: 2; opacity: 0.6; fill: none; }
    .vnet-label { font-family: 'Outfit', sans-serif; font-size: 16px; font-weight: 600; fill: #e2e8f0; }
    .vnet-cidr { font-family: 'JetBrains Mono', monospace; font-size: 11px; fill: #64748b; }
    .vnet-location { font-family: 'Outfit', sans-serif; font-size: 11px; fill: #475569; }
    .subnet-label { font-family: 'Outfit', sans-serif; font-size: 13px; font-weight: 500; fill: #94a3b8; }
    .subnet-cidr { font-family: 'JetBrains Mono', monospace; font-size: 10px; fill: #4b5563; }
    .nsg-badge { font-family: 'Outfit', sans-serif; font-size: 10px; font-weight: 700; fill: #10b981; }
    .vm-name { font-family: 'Outfit', sans-serif; font-size: 10px; font-weight: 500; fill: #e2e8f0; }
    .vm-ip { font-family: 'JetBrains Mono', monospace; font-size: 9px; fill: #94a3b8; }
    .vm-state { font-family: 'JetBrains Mono', monospace; font-size: 8px; fill: rgba(255,255,255,0.5); }
    .pub-ip-dot { font-family: 'Outfit', sans-serif; font-size: 7px; font-weight: 700; fill: white; }
    .peering-label { font-family: 'Outfit', sans-serif; font-size: 10px; fill: #94a3b8; }
    .empty-label { font-family: 'Outfit', sans-serif; font-size: 11px; fill: #374151; font-style: italic; }
"""


def escape_xml(value: Optional[str]) -> str:
    """Escape ``& < > " '`` for use in SVG text and attribute values."""
    if not value:
        return ""
    return html.escape(str(value), quote=True)


def truncate(value: Optional[str], limit: int) -> str:
    text = value or ""
    if len(text) > limit:
        return text[: limit - 1] + ELLIPSIS
    return text


def _num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def power_state_class(state: Optional[str]) -> str:
    key = (state or "").lower()
    return f"vm-{key}" if key in POWER_STATE_COLORS else "vm-other"


def peering_class(state: Optional[str]) -> str:
    key = (state or "").lower()
    return f"peering-{key}" if key in PEERING_STYLES else "peering-other"


def _stylesheet() -> str:
    lines = [_BASE_STYLES.rstrip("\n")]
    for state, color in POWER_STATE_COLORS.items():
        lines.append(f"    .vm-{state} {{ fill: {color}; stroke: {color}; }}")
    lines.append(f"    .vm-other {{ fill: {POWER_STATE_DEFAULT}; stroke: {POWER_STATE_DEFAULT}; }}")
    for state, (color, dash) in PEERING_STYLES.items():
        lines.append(f"    .peering-{state} {{ stroke: {color}; stroke-dasharray: {dash}; }}")
    color, dash = PEERING_DEFAULT
    lines.append(f"    .peering-other {{ stroke: {color}; stroke-dasharray: {dash}; }}")
    return "\n".join(lines) + "\n"


def _text(x: float, y: float, css: str, content: str, anchor: Optional[str] = None) -> str:
    anchor_attr = f' text-anchor="{anchor}"' if anchor else ""
    return f'<text x="{_num(x)}" y="{_num(y)}" class="{css}"{anchor_attr}>{escape_xml(content)}</text>'


def _rect(x: float, y: float, w: float, h: float, rx: int, css: str) -> str:
    return f'<rect x="{_num(x)}" y="{_num(y)}" width="{_num(w)}" height="{_num(h)}" rx="{rx}" class="{css}"/>'


def _render_vm(node: VMNode) -> List[str]:
    vm, box = node.vm, node.box
    cx = box.x + box.width / 2
    tooltip = " | ".join(p for p in (vm.name, vm.vm_size, vm.private_ip, vm.public_ip) if p)
    parts = [
        '<g class="vm">',
        f"<title>{escape_xml(tooltip)}</title>",
        _rect(box.x, box.y, box.width, box.height, 4, f"vm-box {power_state_class(vm.power_state)}"),
        _text(cx, box.y + 20, "vm-name", truncate(vm.name, VM_NAME_MAX), "middle"),
        _text(cx, box.y + 34, "vm-ip", vm.private_ip, "middle"),
        _text(cx, box.y + 48, "vm-state", vm.power_state, "middle"),
    ]
    if vm.public_ip:
        px = box.x + box.width - 6
        parts.append(f'<circle cx="{_num(px)}" cy="{_num(box.y + 6)}" r="5" class="pub-ip-marker"/>')
        parts.append(_text(px, box.y + 9, "pub-ip-dot", "P", "middle"))
    parts.append("</g>")
    return parts


def _render_subnet(node: SubnetNode) -> List[str]:
    box = node.box
    parts = [
        _rect(box.x, box.y, box.width, box.height, 6, "subnet-box"),
        _text(box.x + 12, box.y + 20, "subnet-label", truncate(node.subnet.name, LABEL_MAX)),
        _text(box.x + 12, box.y + 36, "subnet-cidr", truncate(node.subnet.address_prefix, LABEL_MAX)),
    ]
    if node.nsg is not None:
        badge_x = box.x + box.width - 70
        parts.append(_rect(badge_x, box.y + 8, 58, 20, 10, "nsg-badge-box"))
        parts.append(_text(badge_x + 29, box.y + 22, "nsg-badge", "NSG", "middle"))
    for vm in node.vms:
        parts.extend(_render_vm(vm))
    if not node.vms:
        parts.append(_text(box.x + box.width / 2, box.y + SUBNET_HEADER + 24, "empty-label", "No VMs", "middle"))
    return parts


def _render_vnet(node: VNetNode) -> List[str]:
    vnet, box = node.vnet, node.box
    parts = [
        _rect(box.x, box.y, box.width, box.height, 10, "vnet-box"),
        _text(box.x + 16, box.y + 28, "vnet-label", truncate(vnet.name, LABEL_MAX)),
        _text(box.x + 16, box.y + 46, "vnet-cidr", truncate(", ".join(vnet.address_prefixes), LABEL_MAX)),
        _text(box.x + box.width - 16, box.y + 28, "vnet-location", truncate(vnet.location, LABEL_MAX), "end"),
    ]
    for sub in node.subnets:
        parts.extend(_render_subnet(sub))
    if not node.subnets:
        parts.append(_text(box.x + box.width / 2, box.y + VNET_HEADER + 20, "empty-label", "No subnets", "middle"))
    return parts


def render_svg(geometry: Geometry) -> Diagram:
    """Render *geometry*; an empty geometry yields an empty diagram."""
    if geometry.is_empty:
        return Diagram(svg="", width=0, height=0)

    elements: List[str] = []
    for node in geometry.vnets:
        elements.extend(_render_vnet(node))

    for conn in geometry.connectors:
        state = conn.peering.peering_state
        elements.append(
            f'<line x1="{_num(conn.x1)}" y1="{_num(conn.y1)}" x2="{_num(conn.x2)}" y2="{_num(conn.y2)}" '
            f'class="peering-line {peering_class(state)}"/>'
        )
        mid_x = (conn.x1 + conn.x2) / 2
        mid_y = (conn.y1 + conn.y2) / 2 - 6
        elements.append(_text(mid_x, mid_y, "peering-label", state, "middle"))

    width, height = _num(geometry.width), _num(geometry.height)
    svg = "\n".join(
        [
            f'<svg viewBox="0 0 {width} {height}" width="{width}" height="{height}" '
            'xmlns="http://www.w3.org/2000/svg" role="img" aria-label="Azure network topology diagram">',
            f"<style>{_stylesheet()}</style>",
            *elements,
            "</svg>",
        ]
    )
    return Diagram(svg=svg, width=geometry.width, height=geometry.height)
