"""In-memory network controller.

Behaves like the real controller closely enough to reconcile against:
new gateways come up with the controller's default-on features enabled,
placement fields are decoded the way the controller stores them, and a
primary cannot be deleted while its HA sibling exists. Every call is
recorded, which makes it the backend for dry runs and tests.
"""
import copy
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config_engine.codec import decode_placement
from ..config_engine.schema import (
    AZURE_RELATED,
    GCP_RELATED,
    OCI_RELATED,
    CloudType,
    HA_SUFFIX,
    HaGatewayRequest,
    RemoteGatewayState,
    SpokeGatewayRequest,
)
from ..errors import ControllerError, NotFoundError
from .base import CONTROLLER_SCOPE, ControlPlaneClient

logger = logging.getLogger(__name__)

# Zone reported for Azure gateways placed in an availability set
AVAILABILITY_SET = "AvailabilitySet"

DEFAULT_TUNNEL_DETECTION_TIME = 60


@dataclass
class RecordedCall:
    """One call received by the in-memory controller."""
    operation: str
    gateway: str
    params: dict = field(default_factory=dict)
    mutating: bool = True


class InMemoryController(ControlPlaneClient):
    """Network controller simulated in process memory.

    Usage:
        client = InMemoryController()
        name = client.launch_spoke_gateway(req)
        state = client.get_gateway(name)
        assert [c.operation for c in client.mutations] == ["launch_spoke_gateway"]
    """

    def __init__(self, private_mode: bool = False):
        self.private_mode = private_mode
        self.controller_detection_time = DEFAULT_TUNNEL_DETECTION_TIME
        self.gateways: dict[str, RemoteGatewayState] = {}
        self.calls: list[RecordedCall] = []
        self._failures: dict[str, list[Exception]] = {}
        self._ids = itertools.count(1)

    @property
    def mutations(self) -> list[RecordedCall]:
        return [call for call in self.calls if call.mutating]

    def operations(self, mutating_only: bool = True) -> list[str]:
        """Operation names in call order."""
        calls = self.mutations if mutating_only else self.calls
        return [call.operation for call in calls]

    def inject_failure(self, operation: str, error: Exception, times: int = 1) -> None:
        """Make the next ``times`` calls of an operation raise ``error``."""
        self._failures.setdefault(operation, []).extend([error] * times)

    def reset_calls(self) -> None:
        self.calls.clear()

    def _record(self, operation: str, gateway: str, mutating: bool = True, **params: Any) -> None:
        self.calls.append(RecordedCall(operation, gateway, params, mutating))
        logger.debug(f"{operation}({gateway}) {params}")
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _lookup(self, name: str) -> RemoteGatewayState:
        """Find a primary gateway or an HA sibling by name."""
        if name in self.gateways:
            return self.gateways[name]
        if name.endswith(HA_SUFFIX):
            primary = self.gateways.get(name[: -len(HA_SUFFIX)])
            if primary is not None and primary.ha_gw is not None:
                return primary.ha_gw
        raise NotFoundError(name)

    def _set(self, operation: str, name: str, **attrs: Any) -> None:
        self._record(operation, name, **attrs)
        gateway = self._lookup(name)
        for attr, value in attrs.items():
            setattr(gateway, attr, value)

    def _next_address(self) -> tuple[int, str]:
        n = next(self._ids)
        return n, f"54.0.{n // 256}.{n % 256}"

    # Controller

    def get_private_mode_enabled(self) -> bool:
        self._record("get_private_mode_enabled", CONTROLLER_SCOPE, mutating=False)
        return self.private_mode

    # Gateway lifecycle

    def launch_spoke_gateway(self, req: SpokeGatewayRequest) -> str:
        self._record("launch_spoke_gateway", req.gw_name, **req.to_form())
        if req.gw_name in self.gateways:
            raise ControllerError("launch_spoke_gateway", f"gateway {req.gw_name} already exists")

        cloud_type = CloudType(req.cloud_type)
        placement = decode_placement(req.subnet)
        n, address = self._next_address()
        eip_parts = req.eip.split(":")

        state = RemoteGatewayState(
            gw_name=req.gw_name,
            cloud_type=req.cloud_type,
            account_name=req.account_name,
            vpc_id=req.vpc_id,
            vpc_region=req.vpc_reg or req.zone,
            vpc_net=placement.subnet,
            gw_size=req.gw_size,
            gateway_zone=self._gateway_zone(cloud_type, placement, req.zone, req.availability_domain),
            fault_domain=req.fault_domain,
            public_ip=eip_parts[-1] if req.eip else address,
            private_ip=f"10.255.0.{n % 256}",
            cloud_instance_id=f"i-{n:012x}",
            security_group_id=f"sg-{n:08x}",
            image_version="hvm-cloudx-aws-102",
            software_version="7.1.1794",
            insane_mode=req.insane_mode or "no",
            enable_encrypt_volume=req.enc_volume == "yes",
            enable_nat="yes" if req.enable_nat else "no",
            snat_mode="primary" if req.enable_nat else "",
            enable_bgp=req.enable_bgp == "yes",
            enable_bgp_over_lan=req.bgp_over_lan,
            bgp_lan_interfaces_count=req.bgp_lan_interfaces_count,
            enable_ipv6=req.enable_ipv6,
            subnet_ipv6_cidr=placement.ipv6_cidr,
            insertion_gateway=req.insertion_gateway,
            tunnel_encryption_cipher=req.tunnel_encryption_cipher or "default",
            tunnel_forward_secrecy=req.tunnel_forward_secrecy or "disable",
            enable_global_vpc=req.enable_global_vpc,
            reuse_eip=req.eip if req.reuse_eip == "on" else "",
            allocate_new_eip_read=req.reuse_eip != "on",
            enable_private_oob=req.enable_private_oob == "on",
            oob_management_subnet=req.oob_management_subnet,
            lb_vpc_id=req.lb_vpc_id,
            tags=json.loads(req.tag_json) if req.tag_json else {},
            enable_spot_instance=req.enable_spot_instance,
            spot_price=req.spot_price,
            delete_spot=req.delete_spot,
        )
        self.gateways[req.gw_name] = state
        logger.info(f"Launched {req.gw_name} ({cloud_type.name})")
        return req.gw_name

    @staticmethod
    def _gateway_zone(cloud_type: CloudType, placement, zone: str, availability_domain: str) -> str:
        if cloud_type.belongs_to(AZURE_RELATED):
            token = placement.zone or placement.private_mode_zone
            return token[len("az-"):] if token else AVAILABILITY_SET
        if cloud_type.belongs_to(GCP_RELATED):
            return zone
        if cloud_type.belongs_to(OCI_RELATED):
            return availability_domain
        return placement.placement_az or placement.private_mode_zone

    def get_gateway(self, name: str) -> RemoteGatewayState:
        self._record("get_gateway", name, mutating=False)
        return copy.deepcopy(self._lookup(name))

    def update_gateway_size(self, name: str, size: str) -> None:
        self._set("update_gateway_size", name, gw_size=size)

    def delete_gateway(self, cloud_type: int, name: str) -> None:
        self._record("delete_gateway", name, cloud_type=cloud_type)
        gateway = self._lookup(name)
        if name in self.gateways:
            if gateway.ha_gw is not None:
                raise ControllerError(
                    "delete_gateway", f"please delete the HA gateway of {name} first"
                )
            del self.gateways[name]
        else:
            self.gateways[name[: -len(HA_SUFFIX)]].ha_gw = None
        logger.info(f"Deleted {name}")

    def create_ha_gateway(self, req: HaGatewayRequest) -> str:
        self._record("create_ha_gateway", req.primary_gw_name, **req.to_form())
        primary = self._lookup(req.primary_gw_name)
        if primary.ha_gw is not None:
            raise ControllerError("create_ha_gateway", f"{req.gw_name} already exists")

        cloud_type = CloudType(primary.cloud_type)
        placement = decode_placement(req.subnet)
        n, address = self._next_address()
        primary.ha_gw = RemoteGatewayState(
            gw_name=req.gw_name,
            cloud_type=primary.cloud_type,
            account_name=primary.account_name,
            vpc_id=primary.vpc_id,
            vpc_region=primary.vpc_region,
            vpc_net=placement.subnet,
            gw_size=req.gw_size,
            gateway_zone=self._gateway_zone(cloud_type, placement, req.zone, req.availability_domain),
            fault_domain=req.fault_domain,
            public_ip=req.eip.split(":")[-1] if req.eip else address,
            private_ip=f"10.255.1.{n % 256}",
            cloud_instance_id=f"i-{n:012x}",
            security_group_id=f"sg-{n:08x}",
            image_version=primary.image_version,
            software_version=primary.software_version,
            insane_mode=req.insane_mode,
            subnet_ipv6_cidr=placement.ipv6_cidr,
            reuse_eip=req.eip,
            oob_management_subnet=req.oob_management_subnet,
            insertion_gateway=req.insertion_gateway,
        )
        logger.info(f"Created HA gateway {req.gw_name}")
        return req.gw_name

    # BGP communities

    def get_bgp_communities(self, name: str) -> tuple[bool, bool]:
        self._record("get_bgp_communities", name, mutating=False)
        gateway = self._lookup(name)
        return gateway.bgp_send_communities, gateway.bgp_accept_communities

    def set_bgp_communities_accept(self, name: str, enabled: bool) -> None:
        self._set("set_bgp_communities_accept", name, bgp_accept_communities=enabled)

    def set_bgp_communities_send(self, name: str, enabled: bool) -> None:
        self._set("set_bgp_communities_send", name, bgp_send_communities=enabled)

    # Single attribute toggles

    def set_single_az(self, name: str, enabled: bool) -> None:
        self._set("set_single_az", name, single_az="yes" if enabled else "no")

    def set_vpc_dns_server(self, name: str, enabled: bool) -> None:
        self._set("set_vpc_dns_server", name, enable_vpc_dns_server="Enabled" if enabled else "Disabled")

    def set_jumbo_frame(self, name: str, enabled: bool) -> None:
        self._set("set_jumbo_frame", name, jumbo_frame=enabled)

    def set_gro_gso(self, name: str, enabled: bool) -> None:
        self._set("set_gro_gso", name, gro_gso=enabled)

    def get_gro_gso_status(self, name: str) -> bool:
        self._record("get_gro_gso_status", name, mutating=False)
        return self._lookup(name).gro_gso

    def set_private_vpc_default_route(self, name: str, enabled: bool) -> None:
        self._set("set_private_vpc_default_route", name, private_vpc_default_enabled=enabled)

    def set_skip_public_route_update(self, name: str, enabled: bool) -> None:
        self._set("set_skip_public_route_update", name, skip_public_vpc_update_enabled=enabled)

    def set_auto_advertise_s2c_cidrs(self, name: str, enabled: bool) -> None:
        self._set("set_auto_advertise_s2c_cidrs", name, auto_advertise_cidrs_enabled=enabled)

    def set_snat(self, name: str, enabled: bool) -> None:
        self._set(
            "set_snat", name,
            enable_nat="yes" if enabled else "no",
            snat_mode="primary" if enabled else "",
        )

    def set_global_vpc(self, name: str, enabled: bool) -> None:
        self._set("set_global_vpc", name, enable_global_vpc=enabled)

    def set_ipv6(self, name: str, enabled: bool) -> None:
        self._set("set_ipv6", name, enable_ipv6=enabled)

    # Routes

    def edit_customized_routes(self, name: str, cidrs: list[str]) -> None:
        self._set("edit_customized_routes", name, customized_spoke_vpc_routes=list(cidrs))

    def edit_filtered_routes(self, name: str, cidrs: list[str]) -> None:
        self._set("edit_filtered_routes", name, filtered_spoke_vpc_routes=list(cidrs))

    def edit_advertised_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._set(
            "edit_advertised_cidrs", name,
            include_cidr_list=list(cidrs),
            advertised_spoke_routes=list(cidrs),
        )

    def edit_private_route_tables(self, name: str, route_tables: list[str]) -> None:
        self._set("edit_private_route_tables", name, private_route_table_config=list(route_tables))

    # Monitoring and timers

    def set_monitor_subnets(self, name: str, enabled: bool, excluded: list[str]) -> None:
        self._set(
            "set_monitor_subnets", name,
            monitor_subnets_action="enable" if enabled else "disable",
            monitor_exclude_gw_list=list(excluded) if enabled else [],
        )

    def set_tunnel_detection_time(self, name: str, seconds: int) -> None:
        self._set("set_tunnel_detection_time", name, tunnel_detection_time=seconds)

    def get_tunnel_detection_time(self, name: str = CONTROLLER_SCOPE) -> int:
        self._record("get_tunnel_detection_time", name, mutating=False)
        if name == CONTROLLER_SCOPE:
            return self.controller_detection_time
        seconds = self._lookup(name).tunnel_detection_time
        return self.controller_detection_time if seconds is None else seconds

    # Learned CIDR approval

    def set_learned_cidrs_approval(self, name: str, enabled: bool, mode: str) -> None:
        self._set(
            "set_learned_cidrs_approval", name,
            enable_learned_cidrs_approval=enabled,
            learned_cidrs_approval_mode=mode,
        )

    def set_approved_learned_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._set("set_approved_learned_cidrs", name, approved_learned_cidrs=list(cidrs))

    def get_approved_learned_cidrs(self, name: str) -> list[str]:
        self._record("get_approved_learned_cidrs", name, mutating=False)
        return list(self._lookup(name).approved_learned_cidrs)

    # BGP settings

    def set_bgp_manual_advertise_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._set("set_bgp_manual_advertise_cidrs", name, bgp_manual_spoke_advertise_cidrs=list(cidrs))

    def set_bgp_ecmp(self, name: str, enabled: bool) -> None:
        self._set("set_bgp_ecmp", name, bgp_ecmp=enabled)

    def set_active_standby(self, name: str, enabled: bool, preemptive: bool = False) -> None:
        self._set(
            "set_active_standby", name,
            enable_active_standby=enabled,
            enable_active_standby_preemptive=enabled and preemptive,
        )

    def set_route_propagation(self, name: str, enabled: bool) -> None:
        self._set("set_route_propagation", name, disable_route_propagation=not enabled)

    def set_local_as_number(self, name: str, asn: str) -> None:
        self._set("set_local_as_number", name, local_as_number=asn)

    def set_prepend_as_path(self, name: str, path: list[str]) -> None:
        self._set("set_prepend_as_path", name, prepend_as_path=" ".join(path))

    def set_bgp_polling_time(self, name: str, seconds: int) -> None:
        self._set("set_bgp_polling_time", name, bgp_polling_time=seconds)

    def set_bgp_bfd_polling_time(self, name: str, seconds: int) -> None:
        self._set("set_bgp_bfd_polling_time", name, bgp_bfd_polling_time=seconds)

    def set_bgp_hold_time(self, name: str, seconds: int) -> None:
        self._set("set_bgp_hold_time", name, bgp_hold_time=seconds)

    def set_preserve_as_path(self, name: str, enabled: bool) -> None:
        self._set("set_preserve_as_path", name, enable_preserve_as_path=enabled)

    # Instance settings

    def set_rx_queue_size(self, name: str, size: str) -> None:
        self._set("set_rx_queue_size", name, rx_queue_size=size)

    def enable_encrypt_volume(self, name: str, customer_managed_keys: Optional[str] = None) -> None:
        self._record("enable_encrypt_volume", name, customer_managed_keys=customer_managed_keys or "")
        self._lookup(name).enable_encrypt_volume = True

    def update_tags(self, cloud_type: int, name: str, tags: dict[str, str]) -> None:
        self._set("update_tags", name, tags=dict(tags))

    def set_phase2_policy(self, name: str, cipher: str, forward_secrecy: str) -> None:
        self._set(
            "set_phase2_policy", name,
            tunnel_encryption_cipher=cipher,
            tunnel_forward_secrecy=forward_secrecy,
        )
