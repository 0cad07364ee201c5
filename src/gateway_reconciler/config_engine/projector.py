"""State projector.

Rewrites the controller's view of a gateway into the declared
configuration shape so the two can be compared field by field. Fields the
controller never reports (keys, write-only switches) keep their declared
value. Where the controller reports a set or a route list in a different
order, the declared value is kept if the elements are the same.
"""
import dataclasses
from typing import Any

from .codec import DELIMITER, decode_oob_subnet
from .schema import (
    ALICLOUD_RELATED,
    AWS_RELATED,
    AZURE_RELATED,
    GCP_RELATED,
    OCI_RELATED,
    CloudType,
    GatewayConfig,
    HaConfig,
    RemoteGatewayState,
    split_routes,
)

# Zone reported for Azure gateways that are not in an availability zone
AVAILABILITY_SET = "AvailabilitySet"

COMPUTED_FIELDS = (
    "cloud_instance_id",
    "private_ip",
    "public_ip",
    "security_group_id",
    "software_version",
    "image_version",
)

BGP_TIMER_DEFAULTS = {
    "bgp_polling_time": 50,
    "bgp_neighbor_status_polling_time": 5,
    "bgp_hold_time": 180,
    "learned_cidrs_approval_mode": "gateway",
}


def _keep_order(declared: list[str], remote: list[str]) -> list[str]:
    """Declared list when it holds the same elements as the remote one."""
    if sorted(declared) == sorted(remote):
        return list(declared)
    return list(remote)


def _keep_route_string(declared: str, remote: list[str]) -> str:
    if sorted(split_routes(declared)) == sorted(remote):
        return declared
    return ",".join(remote)


def _azure_zone(gateway_zone: str, wanted: bool) -> str:
    if not wanted or not gateway_zone or gateway_zone == AVAILABILITY_SET:
        return ""
    return f"az-{gateway_zone}"


def _private_mode_zone(cloud_type: CloudType, lb_vpc_id: str, gateway_zone: str, wanted: bool) -> str:
    """Private mode zones are only reported for gateways behind a private mode load balancer VPC."""
    if not wanted or not lb_vpc_id or gateway_zone == AVAILABILITY_SET:
        return ""
    if cloud_type.belongs_to(AWS_RELATED):
        return gateway_zone
    if cloud_type.belongs_to(AZURE_RELATED):
        return _azure_zone(gateway_zone, wanted)
    return ""


def _eip_name_resource_group(reuse_eip: str) -> str:
    """Split ``name:resource group:ip`` (or ``name:resource group``)."""
    parts = reuse_eip.split(":")
    if len(parts) == 3:
        return ":".join(parts[:2])
    if len(parts) == 2:
        return reuse_eip
    return ""


def project(remote: RemoteGatewayState, cfg: GatewayConfig, imported: bool = False) -> GatewayConfig:
    """
    Project a remote gateway into the declared configuration shape.

    Args:
        remote: The controller's view, with communities, GRO/GSO status and
            approved CIDRs folded in
        cfg: The last declared configuration
        imported: True when adopting an existing gateway with no declared
            configuration, so optional placement values are always reported

    Returns:
        A GatewayConfig comparable with ``cfg``
    """
    cloud_type = CloudType(remote.cloud_type)
    zone = remote.gateway_zone
    is_aws = cloud_type.belongs_to(AWS_RELATED)
    is_gcp = cloud_type.belongs_to(GCP_RELATED)
    is_azure = cloud_type.belongs_to(AZURE_RELATED)
    is_oci = cloud_type.belongs_to(OCI_RELATED)

    values: dict[str, Any] = {
        "cloud_type": cloud_type,
        "account_name": remote.account_name,
        "gw_name": remote.gw_name,
        "gw_size": remote.gw_size,
        "subnet": remote.vpc_net,
    }

    # Placement
    if cloud_type.belongs_to(AWS_RELATED, OCI_RELATED, ALICLOUD_RELATED):
        values["vpc_id"] = remote.vpc_id.split(DELIMITER)[0]
    else:
        values["vpc_id"] = remote.vpc_id
    values["vpc_reg"] = zone if is_gcp else remote.vpc_region
    values["zone"] = _azure_zone(zone, bool(cfg.zone) or imported) if is_azure else ""
    if is_oci:
        values["availability_domain"] = zone
        values["fault_domain"] = remote.fault_domain

    values["insane_mode"] = remote.insane_mode == "yes"
    values["insane_mode_az"] = zone if is_aws and values["insane_mode"] else ""
    values["insertion_gateway"] = remote.insertion_gateway
    values["insertion_gateway_az"] = zone if remote.insertion_gateway else ""
    values["private_mode_subnet_zone"] = _private_mode_zone(
        cloud_type, remote.lb_vpc_id, zone, bool(cfg.private_mode_subnet_zone) or imported
    )
    values["private_mode_lb_vpc_id"] = remote.lb_vpc_id

    # Addressing
    values["allocate_new_eip"] = remote.allocate_new_eip_read
    if not remote.allocate_new_eip_read:
        values["eip"] = remote.public_ip
        values["azure_eip_name_resource_group"] = (
            _eip_name_resource_group(remote.reuse_eip) if is_azure else ""
        )
    else:
        values["eip"] = ""
        values["azure_eip_name_resource_group"] = ""
    values["enable_ipv6"] = remote.enable_ipv6
    if not is_gcp:
        values["subnet_ipv6_cidr"] = remote.subnet_ipv6_cidr

    # Feature toggles
    values.update({
        "single_ip_snat": remote.enable_nat == "yes" and remote.snat_mode == "primary",
        "single_az_ha": remote.single_az == "yes",
        "enable_vpc_dns_server": remote.enable_vpc_dns_server == "Enabled",
        "enable_encrypt_volume": remote.enable_encrypt_volume,
        "enable_monitor_gateway_subnets": remote.monitor_subnets_action == "enable",
        "monitor_exclude_list": _keep_order(cfg.monitor_exclude_list, remote.monitor_exclude_gw_list),
        "enable_jumbo_frame": remote.jumbo_frame,
        "enable_gro_gso": remote.gro_gso,
        "enable_private_vpc_default_route": remote.private_vpc_default_enabled,
        "enable_skip_public_route_table_update": remote.skip_public_vpc_update_enabled,
        "enable_auto_advertise_s2c_cidrs": remote.auto_advertise_cidrs_enabled,
        "enable_global_vpc": remote.enable_global_vpc,
        "rx_queue_size": remote.rx_queue_size,
        "tags": dict(remote.tags),
        "private_route_table_config": _keep_order(
            cfg.private_route_table_config, remote.private_route_table_config
        ),
        "tunnel_encryption_cipher": remote.tunnel_encryption_cipher,
        "tunnel_forward_secrecy": remote.tunnel_forward_secrecy,
    })
    # An undeclared detection time follows the controller-wide value
    if cfg.tunnel_detection_time is not None:
        values["tunnel_detection_time"] = remote.tunnel_detection_time

    # Routes
    values["customized_spoke_vpc_routes"] = _keep_route_string(
        cfg.customized_spoke_vpc_routes, remote.customized_spoke_vpc_routes
    )
    values["filtered_spoke_vpc_routes"] = _keep_route_string(
        cfg.filtered_spoke_vpc_routes, remote.filtered_spoke_vpc_routes
    )
    values["included_advertised_spoke_routes"] = _keep_route_string(
        cfg.included_advertised_spoke_routes, remote.include_cidr_list
    )

    # BGP
    values.update({
        "enable_bgp": remote.enable_bgp,
        "enable_learned_cidrs_approval": remote.enable_learned_cidrs_approval,
        "approved_learned_cidrs": _keep_order(cfg.approved_learned_cidrs, remote.approved_learned_cidrs),
        "spoke_bgp_manual_advertise_cidrs": list(remote.bgp_manual_spoke_advertise_cidrs),
        "bgp_ecmp": remote.bgp_ecmp,
        "enable_active_standby": remote.enable_active_standby,
        "enable_active_standby_preemptive": remote.enable_active_standby_preemptive,
        "disable_route_propagation": remote.disable_route_propagation,
        "local_as_number": remote.local_as_number,
        "prepend_as_path": remote.prepend_as_path.split(),
        "enable_preserve_as_path": remote.enable_preserve_as_path,
        "enable_bgp_over_lan": remote.enable_bgp_over_lan,
        "bgp_lan_interfaces_count": remote.bgp_lan_interfaces_count,
        "bgp_send_communities": remote.bgp_send_communities,
        "bgp_accept_communities": remote.bgp_accept_communities,
    })
    if remote.enable_bgp:
        values.update({
            "bgp_polling_time": remote.bgp_polling_time,
            "bgp_neighbor_status_polling_time": remote.bgp_bfd_polling_time,
            "bgp_hold_time": remote.bgp_hold_time,
            "learned_cidrs_approval_mode": remote.learned_cidrs_approval_mode,
        })
    else:
        values.update(BGP_TIMER_DEFAULTS)

    # Private networking
    values["enable_private_oob"] = remote.enable_private_oob
    if remote.enable_private_oob:
        subnet, oob_zone = decode_oob_subnet(remote.oob_management_subnet)
        values["oob_management_subnet"] = subnet
        values["oob_availability_zone"] = oob_zone
    else:
        values["oob_management_subnet"] = ""
        values["oob_availability_zone"] = ""

    # Spot
    values.update({
        "enable_spot_instance": remote.enable_spot_instance,
        "spot_price": remote.spot_price,
        "delete_spot": remote.delete_spot,
    })

    values["ha"] = project_ha(remote, cfg, imported) if cfg.manage_ha_gateway else cfg.ha
    return dataclasses.replace(cfg, **values)


def project_ha(remote: RemoteGatewayState, cfg: GatewayConfig, imported: bool = False):
    """Project the HA sibling. No sibling (or one without a size) clears every HA field."""
    ha_gw = remote.ha_gw
    if ha_gw is None or not ha_gw.gw_size:
        return None

    cloud_type = CloudType(remote.cloud_type)
    declared = cfg.ha_or_empty()
    zone = ha_gw.gateway_zone
    is_aws = cloud_type.belongs_to(AWS_RELATED)
    is_azure = cloud_type.belongs_to(AZURE_RELATED)

    ha = HaConfig(subnet=ha_gw.vpc_net, gw_size=ha_gw.gw_size)
    if cloud_type.belongs_to(GCP_RELATED):
        ha.zone = zone
    elif is_azure:
        ha.zone = _azure_zone(zone, bool(declared.zone) or imported)
    if cloud_type.belongs_to(OCI_RELATED):
        ha.availability_domain = zone
        ha.fault_domain = ha_gw.fault_domain

    if is_aws and remote.insane_mode == "yes":
        ha.insane_mode_az = zone
    ha.private_mode_subnet_zone = _private_mode_zone(
        cloud_type, remote.lb_vpc_id, zone, bool(declared.private_mode_subnet_zone) or imported
    )

    if declared.eip or imported:
        ha.eip = ha_gw.public_ip
        if is_azure:
            ha.azure_eip_name_resource_group = _eip_name_resource_group(ha_gw.reuse_eip)

    if remote.enable_private_oob and ha_gw.oob_management_subnet:
        ha.oob_management_subnet, ha.oob_availability_zone = decode_oob_subnet(
            ha_gw.oob_management_subnet
        )
    if not cloud_type.belongs_to(GCP_RELATED):
        ha.subnet_ipv6_cidr = ha_gw.subnet_ipv6_cidr
    return ha


def project_computed(remote: RemoteGatewayState) -> dict[str, Any]:
    """Read-only outputs of the gateway and its sibling."""
    computed = {name: getattr(remote, name) for name in COMPUTED_FIELDS}
    computed["tunnel_detection_time"] = remote.tunnel_detection_time
    if remote.ha_gw is not None:
        computed["ha_gw_name"] = remote.ha_gw.gw_name
        for name in COMPUTED_FIELDS:
            computed[f"ha_{name}"] = getattr(remote.ha_gw, name)
    else:
        computed["ha_gw_name"] = ""
        for name in COMPUTED_FIELDS:
            computed[f"ha_{name}"] = ""
    return computed
