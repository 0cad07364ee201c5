"""Configuration marshaler.

Turns a declared GatewayConfig into control-plane requests: one launch
request on create, the HA sibling request, and on update an ordered plan
of narrow single-attribute calls covering only the changed fields.
"""
import json
import logging
from typing import Protocol

from ..errors import ImmutableFieldError
from .codec import Placement, encode_placement, encode_oob_subnet
from .diff import changed_fields, classify_ha_transition
from .schema import (
    AWS_RELATED,
    AZURE_RELATED,
    GCP_RELATED,
    HA_FIELD_NAMES,
    GatewayConfig,
    HaGatewayRequest,
    SpokeGatewayRequest,
    UpdateCall,
    UpdatePlan,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class FieldStore(Protocol):
    """The configuration store accessors the marshaler reads."""

    def get_field(self, name: str): ...

    def has_changed(self, name: str) -> bool: ...

    def get_change(self, name: str) -> tuple: ...


# Update groups in the order their calls are issued. A group is part of a
# plan only when one of its fields changed.
UPDATE_GROUPS: list[tuple[str, tuple[str, ...]]] = [
    ("bgp_communities", ("bgp_send_communities", "bgp_accept_communities")),
    ("private_route_tables", ("private_route_table_config",)),
    ("preserve_as_path", ("enable_preserve_as_path",)),
    ("tags", ("tags",)),
    ("gw_size", ("gw_size",)),
    ("ha_sibling", tuple(name for name in HA_FIELD_NAMES if name != "ha_gw_size")),
    ("single_az", ("single_az_ha",)),
    ("ha_size", ("ha_gw_size",)),
    ("snat", ("single_ip_snat",)),
    ("vpc_dns_server", ("enable_vpc_dns_server",)),
    ("learned_cidrs_approval", ("enable_learned_cidrs_approval", "learned_cidrs_approval_mode")),
    ("approved_learned_cidrs", ("approved_learned_cidrs",)),
    ("encrypt_volume", ("enable_encrypt_volume",)),
    ("customized_routes", ("customized_spoke_vpc_routes",)),
    ("filtered_routes", ("filtered_spoke_vpc_routes",)),
    ("advertised_cidrs", ("included_advertised_spoke_routes",)),
    ("monitor_subnets", ("enable_monitor_gateway_subnets", "monitor_exclude_list")),
    ("jumbo_frame", ("enable_jumbo_frame",)),
    ("gro_gso", ("enable_gro_gso",)),
    ("private_vpc_default_route", ("enable_private_vpc_default_route",)),
    ("skip_public_route_table", ("enable_skip_public_route_table_update",)),
    ("auto_advertise_s2c", ("enable_auto_advertise_s2c_cidrs",)),
    ("tunnel_detection_time", ("tunnel_detection_time",)),
    ("bgp_manual_advertise_cidrs", ("spoke_bgp_manual_advertise_cidrs",)),
    ("bgp_ecmp", ("bgp_ecmp",)),
    ("active_standby", ("enable_active_standby", "enable_active_standby_preemptive")),
    ("as_path", ("local_as_number", "prepend_as_path")),
    ("bgp_polling_time", ("bgp_polling_time",)),
    ("bgp_bfd_polling_time", ("bgp_neighbor_status_polling_time",)),
    ("bgp_hold_time", ("bgp_hold_time",)),
    ("route_propagation", ("disable_route_propagation",)),
    ("rx_queue_size", ("rx_queue_size",)),
    ("global_vpc", ("enable_global_vpc",)),
    ("ipv6", ("enable_ipv6",)),
    ("tunnel_encryption", ("tunnel_encryption_cipher", "tunnel_forward_secrecy")),
]

# Fields fixed once the gateway exists
IMMUTABLE_FIELDS = (
    "cloud_type",
    "account_name",
    "gw_name",
    "vpc_id",
    "vpc_reg",
    "subnet",
    "zone",
    "insane_mode",
    "insane_mode_az",
    "availability_domain",
    "fault_domain",
    "allocate_new_eip",
    "eip",
    "azure_eip_name_resource_group",
    "enable_private_oob",
    "oob_management_subnet",
    "oob_availability_zone",
    "private_mode_lb_vpc_id",
    "private_mode_subnet_zone",
    "enable_bgp",
    "enable_bgp_over_lan",
    "bgp_lan_interfaces_count",
    "enable_spot_instance",
    "spot_price",
    "delete_spot",
    "insertion_gateway",
    "insertion_gateway_az",
    "subnet_ipv6_cidr",
)

# Immutable only when both the old and the new value are set
SIBLING_BOUND_FIELDS = ("ha_eip", "ha_azure_eip_name_resource_group")


def primary_placement(cfg: GatewayConfig) -> Placement:
    """Placement tokens of the primary gateway."""
    return Placement(
        subnet=cfg.subnet,
        zone=cfg.zone,
        placement_az=cfg.insane_mode_az or cfg.insertion_gateway_az,
        private_mode_zone=cfg.private_mode_subnet_zone,
        oob_az=cfg.oob_availability_zone if cfg.enable_private_oob else "",
        ipv6_cidr=_ipv6_token(cfg, cfg.subnet_ipv6_cidr),
    )


def ha_placement(cfg: GatewayConfig) -> Placement:
    """Placement tokens of the HA sibling. GCP carries its zone separately."""
    ha = cfg.ha_or_empty()
    return Placement(
        subnet=ha.subnet,
        zone="" if cfg.cloud_type.belongs_to(GCP_RELATED) else ha.zone,
        placement_az=ha.insane_mode_az,
        private_mode_zone=ha.private_mode_subnet_zone,
        oob_az=ha.oob_availability_zone if cfg.enable_private_oob else "",
        ipv6_cidr=_ipv6_token(cfg, ha.subnet_ipv6_cidr),
    )


def _ipv6_token(cfg: GatewayConfig, cidr: str) -> str:
    # GCP derives the IPv6 block itself
    if not cfg.enable_ipv6 or cfg.cloud_type.belongs_to(GCP_RELATED):
        return ""
    return cidr


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def to_create_request(cfg: GatewayConfig, private_mode: bool = False) -> SpokeGatewayRequest:
    """Validate a configuration and build its launch request.

    Args:
        cfg: The declared configuration
        private_mode: Whether the controller runs in private mode

    Raises:
        ValidationError: The first violated cross-field rule
    """
    ConfigValidator(private_mode).check(cfg)

    is_gcp = cfg.cloud_type.belongs_to(GCP_RELATED)
    req = SpokeGatewayRequest(
        cloud_type=int(cfg.cloud_type),
        account_name=cfg.account_name,
        gw_name=cfg.gw_name,
        vpc_id=cfg.vpc_id,
        gw_size=cfg.gw_size,
        subnet=encode_placement(primary_placement(cfg)),
        # GCP places gateways by zone, everything else by region
        vpc_reg="" if is_gcp else cfg.vpc_reg,
        zone=cfg.vpc_reg if is_gcp else "",
        availability_domain=cfg.availability_domain,
        fault_domain=cfg.fault_domain,
        enable_nat="yes" if cfg.single_ip_snat else "",
        enable_bgp="yes" if cfg.enable_bgp else "",
        insane_mode=_yes_no(cfg.insane_mode),
        bgp_over_lan=cfg.enable_bgp_over_lan,
        bgp_lan_interfaces_count=cfg.bgp_lan_interfaces_count,
        enable_spot_instance=cfg.enable_spot_instance,
        spot_price=cfg.spot_price,
        delete_spot=cfg.delete_spot,
        lb_vpc_id=cfg.private_mode_lb_vpc_id,
        enable_global_vpc=cfg.enable_global_vpc,
        insertion_gateway=cfg.insertion_gateway,
        enable_ipv6=cfg.enable_ipv6,
    )

    if cfg.cloud_type.belongs_to(AWS_RELATED):
        req.enc_volume = _yes_no(cfg.enable_encrypt_volume)
        req.customer_managed_keys = cfg.customer_managed_keys
    if cfg.enable_private_oob:
        req.enable_private_oob = "on"
        req.oob_management_subnet = encode_oob_subnet(
            cfg.oob_management_subnet, cfg.oob_availability_zone
        )
    if cfg.tags:
        req.tag_json = json.dumps(cfg.tags, sort_keys=True)
    if not cfg.allocate_new_eip:
        req.reuse_eip = "on"
        req.eip = _eip_value(cfg, cfg.eip, cfg.azure_eip_name_resource_group)
    if cfg.tunnel_encryption_cipher != "default":
        req.tunnel_encryption_cipher = cfg.tunnel_encryption_cipher
    if cfg.tunnel_forward_secrecy != "disable":
        req.tunnel_forward_secrecy = cfg.tunnel_forward_secrecy

    logger.debug(f"Launch request for {cfg.gw_name}: {req.to_form()}")
    return req


def to_ha_request(cfg: GatewayConfig) -> HaGatewayRequest:
    """Build the create request of the HA sibling from the ``ha`` descriptor."""
    ha = cfg.ha_or_empty()
    return HaGatewayRequest(
        primary_gw_name=cfg.gw_name,
        gw_name=cfg.ha_name,
        subnet=encode_placement(ha_placement(cfg)),
        gw_size=ha.gw_size,
        zone=ha.zone if cfg.cloud_type.belongs_to(GCP_RELATED) else "",
        availability_domain=ha.availability_domain,
        fault_domain=ha.fault_domain,
        eip=_eip_value(cfg, ha.eip, ha.azure_eip_name_resource_group) if ha.eip else "",
        oob_management_subnet=(
            encode_oob_subnet(ha.oob_management_subnet, ha.oob_availability_zone)
            if cfg.enable_private_oob and ha.oob_management_subnet else ""
        ),
        insane_mode=_yes_no(cfg.insane_mode),
        insertion_gateway=cfg.insertion_gateway,
    )


def _eip_value(cfg: GatewayConfig, eip: str, name_resource_group: str) -> str:
    # Azure addresses travel as "<name>:<resource group>:<ip>"
    if cfg.cloud_type.belongs_to(AZURE_RELATED) and name_resource_group:
        return f"{name_resource_group}:{eip}"
    return eip


def check_immutable(store: FieldStore, changed: list[str]) -> None:
    """Reject changes to fields that cannot change after creation.

    Raises:
        ImmutableFieldError: For the first offending field
    """
    for name in IMMUTABLE_FIELDS:
        if name in changed:
            raise ImmutableFieldError(name)

    for name in SIBLING_BOUND_FIELDS:
        if name in changed:
            old, new = store.get_change(name)
            if old and new:
                raise ImmutableFieldError(
                    name, f"'{name}' can only be changed while creating or deleting the HA gateway"
                )

    if "enable_encrypt_volume" in changed:
        old, new = store.get_change("enable_encrypt_volume")
        if old and not new:
            raise ImmutableFieldError(
                "enable_encrypt_volume", "disabling volume encryption is not supported"
            )
    elif "customer_managed_keys" in changed:
        raise ImmutableFieldError(
            "customer_managed_keys",
            "customer_managed_keys can only be set together with enabling volume encryption",
        )

    if not store.get_field("manage_ha_gateway"):
        for name in HA_FIELD_NAMES:
            if name in changed:
                raise ImmutableFieldError(
                    name, f"'{name}' cannot be changed when manage_ha_gateway is false"
                )


def to_update_plan(store: FieldStore) -> UpdatePlan:
    """Group the changed fields of a store into ordered update calls.

    Issues no remote calls. Immutable field changes are rejected here, so
    an invalid update fails before anything is sent.

    Raises:
        ImmutableFieldError: If a create-only field changed
    """
    changed = changed_fields(store)
    plan = UpdatePlan(gw_name=store.get_field("gw_name"))
    if not changed:
        return plan

    check_immutable(store, changed)

    for group, group_fields in UPDATE_GROUPS:
        hits = tuple(name for name in group_fields if name in changed)
        if hits:
            plan.calls.append(UpdateCall(group=group, fields=group_fields, changed=hits))

    plan.ha_transition = classify_ha_transition(store)
    logger.debug(f"Update plan for {plan.gw_name}: {plan.groups} (HA: {plan.ha_transition.value})")
    return plan
