"""AWS-shaped resource types backed by the simulated cloud."""

import base64
import hashlib
import ipaddress
from typing import Any, Dict, List, Optional, Union
from ..ingest.models import ResourceAddress
from ..registry.base import AttributeKind, AttributeSpec, ResourceType
from ..registry.registry import ResourceTypeRegistry
from ..utils.logging import get_logger
from .simulated import SimulatedAdapter, SimulatedCloud

logger = get_logger("providers.aws")

# RFC 5737 documentation range stands in for public addresses
PUBLIC_POOL = ipaddress.ip_network("203.0.113.0/24")


def _spec(kind: AttributeKind, **flags: Any) -> AttributeSpec:
    return AttributeSpec(kind=kind, **flags)


def _identity() -> Dict[str, AttributeSpec]:
    return {
        "id": _spec(AttributeKind.STRING, computed=True, description="Provider-assigned identifier"),
        "arn": _spec(AttributeKind.STRING, computed=True),
        "tags": _spec(AttributeKind.MAP),
    }


def _network(value: Any) -> Optional[Union[ipaddress.IPv4Network, ipaddress.IPv6Network]]:
    try:
        return ipaddress.ip_network(value)
    except (TypeError, ValueError):
        return None


def _validate_vpc(cloud: SimulatedCloud, inputs: Dict[str, Any]) -> List[str]:
    if _network(inputs.get("cidr_block")) is None:
        return [f"cidr_block '{inputs.get('cidr_block')}' is not a valid network"]
    return []


def _validate_subnet(cloud: SimulatedCloud, inputs: Dict[str, Any]) -> List[str]:
    subnet = _network(inputs.get("cidr_block"))
    if subnet is None:
        return [f"cidr_block '{inputs.get('cidr_block')}' is not a valid network"]
    vpc = cloud.get(inputs.get("vpc_id", ""))
    if vpc is not None:
        parent = _network(vpc.get("cidr_block"))
        if parent is not None and parent.version != subnet.version:
            return [f"cidr_block {subnet} is IPv{subnet.version} but VPC range {parent} is IPv{parent.version}"]
        if parent is not None and not subnet.subnet_of(parent):
            return [f"cidr_block {subnet} is not inside VPC range {parent}"]
    return []


def _validate_key_pair(cloud: SimulatedCloud, inputs: Dict[str, Any]) -> List[str]:
    parts = str(inputs.get("public_key", "")).split()
    if len(parts) < 2 or not parts[0].startswith("ssh-"):
        return ["public_key must be an OpenSSH public key ('ssh-<alg> <base64> [comment]')"]
    try:
        base64.b64decode(parts[1], validate=True)
    except ValueError:
        return ["public_key body is not valid base64"]
    return []


def _vpc_outputs(cloud: SimulatedCloud, object_id: str, inputs: Dict[str, Any]) -> Dict[str, Any]:
    return {"owner_id": "000000000000", "default_route_table_id": f"rtb-main-{object_id[4:12]}"}


def _key_pair_outputs(cloud: SimulatedCloud, object_id: str, inputs: Dict[str, Any]) -> Dict[str, Any]:
    body = base64.b64decode(inputs["public_key"].split()[1])
    digest = hashlib.md5(body, usedforsecurity=False).hexdigest()
    return {"fingerprint": ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))}


def _instance_outputs(cloud: SimulatedCloud, object_id: str, inputs: Dict[str, Any]) -> Dict[str, Any]:
    outputs: Dict[str, Any] = {"instance_state": "running", "private_ip": None, "public_ip": None}
    subnet = cloud.get(inputs.get("subnet_id", ""))
    network = _network(subnet.get("cidr_block")) if subnet else None
    if network is not None:
        # the first four addresses of a subnet are reserved
        taken = {(cloud.get(oid) or {}).get("private_ip") for oid in cloud.ids("i")}
        for host in list(network.hosts())[3:]:
            if str(host) not in taken:
                outputs["private_ip"] = str(host)
                break
    if inputs.get("associate_public_ip_address"):
        offset = int(hashlib.sha1(object_id.encode()).hexdigest(), 16) % (PUBLIC_POOL.num_addresses - 2) + 1
        outputs["public_ip"] = str(PUBLIC_POOL.network_address + offset)
    return outputs


def _instance_private_ip_record(cloud: SimulatedCloud, object_id: str, outputs: Dict[str, Any]) -> None:
    stored = cloud.get(object_id)
    if stored is not None and outputs.get("private_ip"):
        stored["private_ip"] = outputs["private_ip"]
        cloud.update(object_id, stored)


class InstanceAdapter(SimulatedAdapter):
    """Instances also remember their private address so the next one gets a different host."""

    def create(self, address: ResourceAddress, inputs: Dict[str, Any]) -> Dict[str, Any]:
        outputs = super().create(address, inputs)
        _instance_private_ip_record(self.cloud, outputs["id"], outputs)
        return outputs

    def update(self, address: ResourceAddress, inputs: Dict[str, Any], outputs: Dict[str, Any]) -> Dict[str, Any]:
        refreshed = super().update(address, inputs, outputs)
        _instance_private_ip_record(self.cloud, refreshed["id"], refreshed)
        return refreshed


def build_default_registry(store_path: Optional[str] = None, cloud: Optional[SimulatedCloud] = None) -> ResourceTypeRegistry:
    """
    Registry with every simulated AWS resource type.

    Args:
        store_path: JSON file that persists the simulated objects between runs
        cloud: Existing SimulatedCloud to share (takes precedence over store_path)

    Returns:
        ResourceTypeRegistry
    """
    cloud = cloud or SimulatedCloud(store_path)
    registry = ResourceTypeRegistry()
    S, N, B, L = AttributeKind.STRING, AttributeKind.NUMBER, AttributeKind.BOOL, AttributeKind.LIST

    registry.register(ResourceType(
        name="aws_vpc",
        attributes={
            **_identity(),
            "cidr_block": _spec(S, required=True, immutable=True),
            "enable_dns_support": _spec(B),
            "enable_dns_hostnames": _spec(B),
            "instance_tenancy": _spec(S, immutable=True),
            "owner_id": _spec(S, computed=True),
            "default_route_table_id": _spec(S, computed=True),
        },
        adapter=SimulatedAdapter(cloud, "vpc", compute=_vpc_outputs, validator=_validate_vpc)
    ))
    registry.register(ResourceType(
        name="aws_subnet",
        attributes={
            **_identity(),
            "vpc_id": _spec(S, required=True, immutable=True),
            "cidr_block": _spec(S, required=True, immutable=True),
            "availability_zone": _spec(S, immutable=True),
            "map_public_ip_on_launch": _spec(B),
        },
        adapter=SimulatedAdapter(cloud, "subnet", validator=_validate_subnet)
    ))
    registry.register(ResourceType(
        name="aws_internet_gateway",
        attributes={**_identity(), "vpc_id": _spec(S, required=True)},
        adapter=SimulatedAdapter(cloud, "igw")
    ))
    registry.register(ResourceType(
        name="aws_route_table",
        attributes={
            **_identity(),
            "vpc_id": _spec(S, required=True, immutable=True),
            "route": _spec(L, description="Routes: {cidr_block, gateway_id}"),
        },
        adapter=SimulatedAdapter(cloud, "rtb")
    ))
    registry.register(ResourceType(
        name="aws_route_table_association",
        attributes={
            "id": _spec(S, computed=True),
            "arn": _spec(S, computed=True),
            "subnet_id": _spec(S, required=True, immutable=True),
            "route_table_id": _spec(S, required=True),
        },
        adapter=SimulatedAdapter(cloud, "rtbassoc")
    ))
    registry.register(ResourceType(
        name="aws_security_group",
        attributes={
            **_identity(),
            "name": _spec(S, required=True, immutable=True),
            "description": _spec(S, immutable=True),
            "vpc_id": _spec(S, required=True, immutable=True),
            "ingress": _spec(L),
            "egress": _spec(L),
        },
        adapter=SimulatedAdapter(cloud, "sg")
    ))
    registry.register(ResourceType(
        name="aws_key_pair",
        attributes={
            **_identity(),
            "key_name": _spec(S, required=True, immutable=True),
            "public_key": _spec(S, required=True, immutable=True),
            "fingerprint": _spec(S, computed=True),
        },
        adapter=SimulatedAdapter(cloud, "key", compute=_key_pair_outputs, validator=_validate_key_pair)
    ))
    registry.register(ResourceType(
        name="aws_instance",
        attributes={
            **_identity(),
            "ami": _spec(S, required=True, immutable=True),
            "instance_type": _spec(S, required=True),
            "subnet_id": _spec(S, required=True, immutable=True),
            "vpc_security_group_ids": _spec(L),
            "key_name": _spec(S, immutable=True),
            "associate_public_ip_address": _spec(B, immutable=True),
            "root_block_device_size": _spec(N),
            "user_data": _spec(S, immutable=True),
            "instance_state": _spec(S, computed=True),
            "private_ip": _spec(S, computed=True),
            "public_ip": _spec(S, computed=True),
        },
        adapter=InstanceAdapter(cloud, "i", compute=_instance_outputs)
    ))

    logger.debug(f"Registered {len(registry)} simulated AWS resource types")
    return registry
