"""Pre-flight validation for declared gateway configurations.

Catches cross-field errors before any control-plane communication. Every
rule is evaluated; callers that need a single failure raise the first one.
"""
from typing import Any

from ..errors import ValidationError
from .codec import DELIMITER
from .schema import (
    AWS_RELATED,
    GCP_RELATED,
    AZURE_RELATED,
    OCI_RELATED,
    ALICLOUD_RELATED,
    SPOKE_FAMILIES,
    IPV6_FAMILIES,
    CloudType,
    GatewayConfig,
    HaConfig,
    ValidationResult,
    describe_family,
)

# Feature toggles the controller only implements on AWS
AWS_ONLY_FIELDS = (
    "enable_private_vpc_default_route",
    "enable_skip_public_route_table_update",
    "enable_encrypt_volume",
    "enable_private_oob",
    "rx_queue_size",
    "insertion_gateway",
)

# Fields packed into a ``~~`` separated wire value
ENCODED_FIELDS = (
    "subnet",
    "zone",
    "insane_mode_az",
    "insertion_gateway_az",
    "private_mode_subnet_zone",
    "oob_management_subnet",
    "oob_availability_zone",
    "subnet_ipv6_cidr",
)


class ConfigValidator:
    """Validate a gateway configuration for cross-field errors."""

    def __init__(self, private_mode: bool = False):
        """
        Initialize validator.

        Args:
            private_mode: Whether the controller runs in private mode
        """
        self.private_mode = private_mode

    def validate(self, cfg: GatewayConfig) -> ValidationResult:
        """
        Validate a gateway configuration.

        Args:
            cfg: The declared configuration

        Returns:
            ValidationResult holding every violated rule, in rule order
        """
        errors: list[ValidationError] = []
        ha = cfg.ha_or_empty()

        for rule in (
            self._validate_ha_management,
            self._validate_identity,
            self._validate_aws_only,
            self._validate_zone,
            self._validate_bgp,
            self._validate_learned_cidrs,
            self._validate_oci_placement,
            self._validate_ha_placement,
            self._validate_insane_mode,
            self._validate_ha_oci_placement,
            self._validate_encryption,
            self._validate_monitoring,
            self._validate_bgp_over_lan,
            self._validate_private_oob,
            self._validate_tags,
            self._validate_active_standby,
            self._validate_spot,
            self._validate_eip,
            self._validate_private_mode,
            self._validate_global_vpc,
            self._validate_insertion_gateway,
            self._validate_ipv6,
            self._validate_misc,
            self._validate_encodable,
        ):
            rule(cfg, ha, errors)

        return ValidationResult(errors=errors)

    def check(self, cfg: GatewayConfig) -> None:
        """Raise the first violated rule.

        Raises:
            ValidationError: If any rule is violated
        """
        self.validate(cfg).raise_first()

    # --- Rules ---

    def _validate_ha_management(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.manage_ha_gateway:
            return
        for name, value in _ha_items(ha):
            if value:
                errors.append(ValidationError(
                    name, "must be empty when manage_ha_gateway is false"
                ))

    def _validate_identity(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if not cfg.cloud_type.belongs_to(SPOKE_FAMILIES):
            errors.append(ValidationError(
                "cloud_type",
                f"invalid cloud type {cfg.cloud_type.label}, it can only be "
                f"{describe_family(SPOKE_FAMILIES)}",
            ))
        for name in ("gw_name", "account_name", "vpc_id", "gw_size"):
            if not getattr(cfg, name):
                errors.append(ValidationError(name, "is required"))

    def _validate_aws_only(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.cloud_type.belongs_to(AWS_RELATED):
            return
        for name in AWS_ONLY_FIELDS:
            if getattr(cfg, name):
                errors.append(ValidationError(
                    name, f"is only supported for {describe_family(AWS_RELATED)}"
                ))

    def _validate_zone(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if not cfg.zone:
            return
        if not cfg.cloud_type.belongs_to(AZURE_RELATED):
            errors.append(ValidationError(
                "zone", f"is only supported for {describe_family(AZURE_RELATED)}"
            ))
        elif not cfg.zone.startswith("az-"):
            errors.append(ValidationError(
                "zone", f"{cfg.zone!r} must be of the form 'az-n'"
            ))

    def _validate_bgp(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_bgp and cfg.cloud_type not in (CloudType.AWS, CloudType.AZURE):
            errors.append(ValidationError(
                "enable_bgp", "BGP is only supported on AWS (1) and Azure (8)"
            ))
        if cfg.disable_route_propagation and not cfg.enable_bgp:
            errors.append(ValidationError(
                "disable_route_propagation", "requires enable_bgp"
            ))

    def _validate_learned_cidrs(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.approved_learned_cidrs and not cfg.enable_learned_cidrs_approval:
            errors.append(ValidationError(
                "approved_learned_cidrs", "requires enable_learned_cidrs_approval"
            ))

    def _validate_oci_placement(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        is_oci = cfg.cloud_type.belongs_to(OCI_RELATED)
        for name in ("availability_domain", "fault_domain"):
            value = getattr(cfg, name)
            if is_oci and not value:
                errors.append(ValidationError(name, "is required for OCI"))
            elif not is_oci and value:
                errors.append(ValidationError(
                    name, f"is only supported for OCI, not {cfg.cloud_type.label}"
                ))

    def _validate_ha_placement(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if ha.zone and not cfg.cloud_type.belongs_to(GCP_RELATED, AZURE_RELATED):
            errors.append(ValidationError(
                "ha_zone", f"is only supported for {describe_family(GCP_RELATED, AZURE_RELATED)}"
            ))
        if cfg.cloud_type.belongs_to(GCP_RELATED) and ha.subnet and not ha.zone:
            errors.append(ValidationError("ha_zone", "is required to enable HA on GCP"))
        if cfg.cloud_type.belongs_to(AZURE_RELATED) and ha.zone and not ha.subnet:
            errors.append(ValidationError("ha_subnet", "is required when ha_zone is set on Azure"))
        if ha.gw_size and not ha.enabled:
            errors.append(ValidationError(
                "ha_gw_size", "must be empty when HA is not enabled (no ha_subnet or ha_zone)"
            ))
        if ha.enabled and not ha.gw_size:
            errors.append(ValidationError("ha_gw_size", "is required when HA is enabled"))

    def _validate_insane_mode(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        is_aws = cfg.cloud_type.belongs_to(AWS_RELATED)
        if cfg.insane_mode:
            families = (AWS_RELATED, GCP_RELATED, AZURE_RELATED, OCI_RELATED)
            if not cfg.cloud_type.belongs_to(*families):
                errors.append(ValidationError(
                    "insane_mode", f"is only supported for {describe_family(*families)}"
                ))
            if is_aws:
                if not cfg.insane_mode_az:
                    errors.append(ValidationError("insane_mode_az", "is required for insane mode on AWS"))
                if ha.subnet and not ha.insane_mode_az:
                    errors.append(ValidationError(
                        "ha_insane_mode_az", "is required for insane mode on AWS when ha_subnet is set"
                    ))
        if cfg.insane_mode_az and not (cfg.insane_mode and is_aws):
            errors.append(ValidationError(
                "insane_mode_az", "is only valid with insane mode on AWS"
            ))
        if ha.insane_mode_az and not (cfg.insane_mode and is_aws and ha.subnet):
            errors.append(ValidationError(
                "ha_insane_mode_az", "is only valid with insane mode and ha_subnet on AWS"
            ))

    def _validate_ha_oci_placement(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        is_oci = cfg.cloud_type.belongs_to(OCI_RELATED)
        for name in ("availability_domain", "fault_domain"):
            value = getattr(ha, name)
            if is_oci and ha.enabled and not value:
                errors.append(ValidationError(f"ha_{name}", "is required to enable HA on OCI"))
            elif not (is_oci and ha.enabled) and value:
                errors.append(ValidationError(
                    f"ha_{name}", "is only valid for OCI with HA enabled"
                ))

    def _validate_encryption(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.customer_managed_keys and not cfg.enable_encrypt_volume:
            errors.append(ValidationError(
                "customer_managed_keys", "requires enable_encrypt_volume"
            ))

    def _validate_monitoring(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_monitor_gateway_subnets and (
            not cfg.cloud_type.belongs_to(AWS_RELATED) or cfg.cloud_type == CloudType.AWS_CHINA
        ):
            errors.append(ValidationError(
                "enable_monitor_gateway_subnets",
                "is only supported for AWS family gateways, excluding AWS China",
            ))
        if cfg.monitor_exclude_list and not cfg.enable_monitor_gateway_subnets:
            errors.append(ValidationError(
                "monitor_exclude_list", "requires enable_monitor_gateway_subnets"
            ))

    def _validate_bgp_over_lan(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        on_azure = cfg.cloud_type.belongs_to(AZURE_RELATED)
        if cfg.enable_bgp_over_lan:
            if not cfg.enable_bgp:
                errors.append(ValidationError("enable_bgp_over_lan", "requires enable_bgp"))
            if not on_azure:
                errors.append(ValidationError(
                    "enable_bgp_over_lan", f"is only supported for {describe_family(AZURE_RELATED)}"
                ))
        needs_count = cfg.enable_bgp_over_lan and on_azure
        if needs_count and cfg.bgp_lan_interfaces_count is None:
            errors.append(ValidationError(
                "bgp_lan_interfaces_count", "is required with BGP over LAN on Azure"
            ))
        elif not needs_count and cfg.bgp_lan_interfaces_count is not None:
            errors.append(ValidationError(
                "bgp_lan_interfaces_count", "is only valid with BGP over LAN on Azure"
            ))

    def _validate_private_oob(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        primary = ("oob_availability_zone", "oob_management_subnet")
        sibling = ("oob_management_subnet", "oob_availability_zone")
        if cfg.enable_private_oob:
            for name in primary:
                if not getattr(cfg, name):
                    errors.append(ValidationError(name, "is required with enable_private_oob"))
            for name in sibling:
                value = getattr(ha, name)
                if ha.subnet and not value:
                    errors.append(ValidationError(
                        f"ha_{name}", "is required with enable_private_oob when ha_subnet is set"
                    ))
                elif not ha.subnet and value:
                    errors.append(ValidationError(f"ha_{name}", "is only valid when ha_subnet is set"))
            return
        for name in primary:
            if getattr(cfg, name):
                errors.append(ValidationError(name, "must be empty when enable_private_oob is false"))
        for name in sibling:
            if getattr(ha, name):
                errors.append(ValidationError(
                    f"ha_{name}", "must be empty when enable_private_oob is false"
                ))

    def _validate_tags(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.tags and not cfg.cloud_type.belongs_to(AWS_RELATED, AZURE_RELATED):
            errors.append(ValidationError(
                "tags", f"are only supported for {describe_family(AWS_RELATED, AZURE_RELATED)}"
            ))

    def _validate_active_standby(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_active_standby and not (ha.enabled and cfg.enable_bgp):
            errors.append(ValidationError(
                "enable_active_standby", "requires an HA gateway and enable_bgp"
            ))
        if cfg.enable_active_standby_preemptive and not cfg.enable_active_standby:
            errors.append(ValidationError(
                "enable_active_standby_preemptive", "requires enable_active_standby"
            ))

    def _validate_spot(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_spot_instance:
            if not cfg.cloud_type.belongs_to(AWS_RELATED, AZURE_RELATED):
                errors.append(ValidationError(
                    "enable_spot_instance",
                    f"is only supported for {describe_family(AWS_RELATED, AZURE_RELATED)}",
                ))
        elif cfg.spot_price:
            errors.append(ValidationError("spot_price", "requires enable_spot_instance"))
        if cfg.delete_spot and not (cfg.enable_spot_instance and cfg.cloud_type.belongs_to(AZURE_RELATED)):
            errors.append(ValidationError(
                "delete_spot", "is only supported for Azure spot instances"
            ))

    def _validate_eip(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        on_azure = cfg.cloud_type.belongs_to(AZURE_RELATED)
        if not (cfg.enable_private_oob or self.private_mode):
            if not cfg.allocate_new_eip:
                families = (AWS_RELATED, GCP_RELATED, AZURE_RELATED, OCI_RELATED)
                if not cfg.cloud_type.belongs_to(*families):
                    errors.append(ValidationError(
                        "allocate_new_eip",
                        f"can only be false for {describe_family(*families)}",
                    ))
                if not cfg.eip:
                    errors.append(ValidationError("eip", "is required when allocate_new_eip is false"))
                if on_azure and not cfg.azure_eip_name_resource_group:
                    errors.append(ValidationError(
                        "azure_eip_name_resource_group",
                        "is required on Azure when allocate_new_eip is false",
                    ))
            elif cfg.eip:
                errors.append(ValidationError("eip", "requires allocate_new_eip to be false"))
        if cfg.azure_eip_name_resource_group and (not on_azure or cfg.allocate_new_eip):
            errors.append(ValidationError(
                "azure_eip_name_resource_group",
                "is only valid on Azure with allocate_new_eip false",
            ))

        if on_azure and ha.eip and not ha.azure_eip_name_resource_group:
            errors.append(ValidationError(
                "ha_azure_eip_name_resource_group", "is required on Azure when ha_eip is set"
            ))
        if ha.azure_eip_name_resource_group and (not ha.eip or not on_azure):
            errors.append(ValidationError(
                "ha_azure_eip_name_resource_group", "is only valid on Azure with ha_eip set"
            ))

    def _validate_private_mode(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        names = ("private_mode_subnet_zone", "private_mode_lb_vpc_id")
        if not self.private_mode:
            for name in names:
                if getattr(cfg, name):
                    errors.append(ValidationError(
                        name, "is only valid when the controller is in private mode"
                    ))
            if ha.private_mode_subnet_zone:
                errors.append(ValidationError(
                    "ha_private_mode_subnet_zone",
                    "is only valid when the controller is in private mode",
                ))
            return

        if cfg.cloud_type.belongs_to(AWS_RELATED):
            if not cfg.private_mode_subnet_zone:
                errors.append(ValidationError(
                    "private_mode_subnet_zone", "is required on AWS in private mode"
                ))
            if ha.subnet and not ha.private_mode_subnet_zone:
                errors.append(ValidationError(
                    "ha_private_mode_subnet_zone",
                    "is required on AWS in private mode when ha_subnet is set",
                ))
        elif not cfg.cloud_type.belongs_to(AZURE_RELATED):
            for name, value in (
                ("private_mode_subnet_zone", cfg.private_mode_subnet_zone),
                ("ha_private_mode_subnet_zone", ha.private_mode_subnet_zone),
            ):
                if value:
                    errors.append(ValidationError(
                        name, f"is only supported for {describe_family(AWS_RELATED, AZURE_RELATED)}"
                    ))
        if cfg.private_mode_lb_vpc_id and not cfg.cloud_type.belongs_to(AWS_RELATED, AZURE_RELATED):
            errors.append(ValidationError(
                "private_mode_lb_vpc_id",
                f"is only supported for {describe_family(AWS_RELATED, AZURE_RELATED)}",
            ))

    def _validate_global_vpc(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_global_vpc and not cfg.cloud_type.belongs_to(GCP_RELATED):
            errors.append(ValidationError("enable_global_vpc", "is only supported for GCP"))

    def _validate_insertion_gateway(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.insertion_gateway:
            if cfg.insane_mode:
                errors.append(ValidationError(
                    "insertion_gateway", "and insane_mode are mutually exclusive"
                ))
            if not cfg.insertion_gateway_az:
                errors.append(ValidationError(
                    "insertion_gateway_az", "is required when insertion_gateway is enabled"
                ))
        elif cfg.insertion_gateway_az:
            errors.append(ValidationError("insertion_gateway_az", "requires insertion_gateway"))

    def _validate_ipv6(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if not cfg.enable_ipv6:
            for name, value in (
                ("subnet_ipv6_cidr", cfg.subnet_ipv6_cidr),
                ("ha_subnet_ipv6_cidr", ha.subnet_ipv6_cidr),
            ):
                if value:
                    errors.append(ValidationError(name, "requires enable_ipv6"))
            return

        if not cfg.cloud_type.belongs_to(IPV6_FAMILIES):
            errors.append(ValidationError(
                "enable_ipv6", f"is only supported for {describe_family(IPV6_FAMILIES)}"
            ))
        elif cfg.cloud_type.belongs_to(GCP_RELATED):
            for name, value in (
                ("subnet_ipv6_cidr", cfg.subnet_ipv6_cidr),
                ("ha_subnet_ipv6_cidr", ha.subnet_ipv6_cidr),
            ):
                if value:
                    errors.append(ValidationError(name, "is assigned by GCP and cannot be set"))
        else:
            if not cfg.subnet_ipv6_cidr:
                errors.append(ValidationError("subnet_ipv6_cidr", "is required when enable_ipv6 is true"))
            if ha.subnet and not ha.subnet_ipv6_cidr:
                errors.append(ValidationError(
                    "ha_subnet_ipv6_cidr", "is required when enable_ipv6 is true and ha_subnet is set"
                ))

    def _validate_misc(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        if cfg.enable_preserve_as_path and not cfg.enable_bgp:
            errors.append(ValidationError("enable_preserve_as_path", "requires enable_bgp"))
        families = (AWS_RELATED, AZURE_RELATED, ALICLOUD_RELATED)
        if cfg.enable_vpc_dns_server and not cfg.cloud_type.belongs_to(*families):
            errors.append(ValidationError(
                "enable_vpc_dns_server", f"is only supported for {describe_family(*families)}"
            ))

    def _validate_encodable(self, cfg: GatewayConfig, ha: HaConfig, errors: list) -> None:
        """Values packed into one wire field must not contain the delimiter."""
        values: list[tuple[str, Any]] = [(name, getattr(cfg, name)) for name in ENCODED_FIELDS]
        values.extend(_ha_items(ha))
        for name, value in values:
            if isinstance(value, str) and DELIMITER in value:
                errors.append(ValidationError(name, f"must not contain {DELIMITER!r}"))


def _ha_items(ha: HaConfig) -> list[tuple[str, str]]:
    return [(f"ha_{name}", value) for name, value in vars(ha).items()]
