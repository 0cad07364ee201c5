"""Schema definitions for the gateway reconciler.

Defines the declared configuration of a spoke gateway, the control-plane's
read-back representation, and the request structures sent on create.
"""
from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any, Iterable, Optional, Union

from ..errors import ValidationError


class CloudType(int, Enum):
    """Provider family tag of a gateway instance."""
    AWS = 1
    GCP = 4
    AZURE = 8
    OCI = 16
    AZURE_GOV = 32
    AWS_GOV = 256
    AWS_CHINA = 1024
    AZURE_CHINA = 2048
    ALICLOUD = 8192
    AWS_TS = 16384
    AWS_S = 32768
    EDGE_CSP = 65536
    EDGE_NEO = 262144
    EDGE_EQUINIX = 524288
    EDGE_MEGAPORT = 1048576

    def belongs_to(self, *families: Iterable["CloudType"]) -> bool:
        """True when this cloud type is a member of any of the given families.

        Usage:
            cloud_type.belongs_to(AWS_RELATED, AZURE_RELATED)
        """
        return any(self in family for family in families)

    @property
    def label(self) -> str:
        return f"{self.name} ({self.value})"


AWS_RELATED = frozenset({
    CloudType.AWS, CloudType.AWS_GOV, CloudType.AWS_CHINA, CloudType.AWS_TS, CloudType.AWS_S,
})
GCP_RELATED = frozenset({CloudType.GCP})
AZURE_RELATED = frozenset({CloudType.AZURE, CloudType.AZURE_GOV, CloudType.AZURE_CHINA})
OCI_RELATED = frozenset({CloudType.OCI})
ALICLOUD_RELATED = frozenset({CloudType.ALICLOUD})
EDGE_RELATED = frozenset({
    CloudType.EDGE_CSP, CloudType.EDGE_NEO, CloudType.EDGE_EQUINIX, CloudType.EDGE_MEGAPORT,
})

# Families a spoke gateway can be launched in
SPOKE_FAMILIES = AWS_RELATED | GCP_RELATED | AZURE_RELATED | OCI_RELATED | ALICLOUD_RELATED
IPV6_FAMILIES = AWS_RELATED | AZURE_RELATED | GCP_RELATED


def describe_family(*families: Iterable[CloudType]) -> str:
    """Human-readable list of the cloud types in the given families."""
    members = sorted(set().union(*families), key=lambda c: c.value)
    return ", ".join(member.label for member in members)


class HaTransition(str, Enum):
    """What the HA sibling manager does for one update."""
    NONE = "none"
    CREATE = "create"
    DELETE = "delete"
    RESIZE = "resize"
    RECREATE = "recreate"


class LifecyclePhase(str, Enum):
    """Where a gateway instance is in its lifecycle."""
    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"


# --- Declared configuration ---

@dataclass
class HaConfig:
    """Placement and sizing of the optional HA sibling."""
    subnet: str = ""
    zone: str = ""
    gw_size: str = ""
    insane_mode_az: str = ""
    eip: str = ""
    azure_eip_name_resource_group: str = ""
    availability_domain: str = ""
    fault_domain: str = ""
    oob_management_subnet: str = ""
    oob_availability_zone: str = ""
    private_mode_subnet_zone: str = ""
    subnet_ipv6_cidr: str = ""

    @property
    def enabled(self) -> bool:
        """An HA sibling exists only when it has a subnet or a zone."""
        return bool(self.subnet or self.zone)


HA_FIELD_NAMES = tuple(f"ha_{f.name}" for f in fields(HaConfig))


@dataclass
class GatewayConfig:
    """Desired state of one spoke gateway."""
    cloud_type: CloudType
    account_name: str
    gw_name: str
    vpc_id: str = ""
    vpc_reg: str = ""
    gw_size: str = ""
    subnet: str = ""
    zone: str = ""
    availability_domain: str = ""
    fault_domain: str = ""
    # Addressing
    allocate_new_eip: bool = True
    eip: str = ""
    azure_eip_name_resource_group: str = ""
    enable_ipv6: bool = False
    subnet_ipv6_cidr: str = ""
    # Performance placement
    insane_mode: bool = False
    insane_mode_az: str = ""
    insertion_gateway: bool = False
    insertion_gateway_az: str = ""
    # Feature toggles
    single_ip_snat: bool = False
    single_az_ha: bool = True
    enable_vpc_dns_server: bool = False
    enable_encrypt_volume: bool = False
    customer_managed_keys: str = ""
    enable_monitor_gateway_subnets: bool = False
    monitor_exclude_list: list[str] = field(default_factory=list)
    enable_jumbo_frame: bool = True
    enable_gro_gso: bool = True
    enable_private_vpc_default_route: bool = False
    enable_skip_public_route_table_update: bool = False
    enable_auto_advertise_s2c_cidrs: bool = False
    tunnel_detection_time: Optional[int] = None
    enable_global_vpc: bool = False
    rx_queue_size: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    private_route_table_config: list[str] = field(default_factory=list)
    tunnel_encryption_cipher: str = "default"
    tunnel_forward_secrecy: str = "disable"
    # Route lists (comma-joined)
    customized_spoke_vpc_routes: str = ""
    filtered_spoke_vpc_routes: str = ""
    included_advertised_spoke_routes: str = ""
    # BGP
    enable_bgp: bool = False
    enable_learned_cidrs_approval: bool = False
    approved_learned_cidrs: list[str] = field(default_factory=list)
    learned_cidrs_approval_mode: str = "gateway"
    spoke_bgp_manual_advertise_cidrs: list[str] = field(default_factory=list)
    bgp_ecmp: bool = False
    enable_active_standby: bool = False
    enable_active_standby_preemptive: bool = False
    disable_route_propagation: bool = False
    local_as_number: str = ""
    prepend_as_path: list[str] = field(default_factory=list)
    bgp_polling_time: int = 50
    bgp_neighbor_status_polling_time: int = 5
    bgp_hold_time: int = 180
    enable_preserve_as_path: bool = False
    enable_bgp_over_lan: bool = False
    bgp_lan_interfaces_count: Optional[int] = None
    bgp_send_communities: bool = False
    bgp_accept_communities: bool = False
    # Private networking
    enable_private_oob: bool = False
    oob_management_subnet: str = ""
    oob_availability_zone: str = ""
    private_mode_lb_vpc_id: str = ""
    private_mode_subnet_zone: str = ""
    # Spot
    enable_spot_instance: bool = False
    spot_price: str = ""
    delete_spot: bool = False
    # HA
    manage_ha_gateway: bool = True
    ha: Optional[HaConfig] = None

    @property
    def ha_name(self) -> str:
        return self.gw_name + HA_SUFFIX

    @property
    def ha_enabled(self) -> bool:
        return self.ha is not None and self.ha.enabled

    def ha_or_empty(self) -> HaConfig:
        return self.ha if self.ha is not None else HaConfig()

    @classmethod
    def from_fields(cls, values: dict[str, Any]) -> "GatewayConfig":
        """Build a config from flat store fields (``ha_`` prefixed for the sibling).

        Raises:
            ValidationError: If cloud_type is not a known provider family tag
        """
        known = {f.name for f in fields(cls)} - {"ha"}
        kwargs = {k: v for k, v in values.items() if k in known and v is not None}

        try:
            kwargs["cloud_type"] = CloudType(int(values.get("cloud_type", 0)))
        except (TypeError, ValueError):
            raise ValidationError(
                "cloud_type",
                f"invalid cloud type {values.get('cloud_type')!r}, it can only be "
                f"{describe_family(SPOKE_FAMILIES)}",
            )
        for name in SET_FIELDS | LIST_FIELDS:
            if name in kwargs:
                kwargs[name] = list(kwargs[name])

        ha_values = {
            name[len("ha_"):]: values[name] or ""
            for name in HA_FIELD_NAMES
            if values.get(name)
        }
        if ha_values:
            kwargs["ha"] = HaConfig(**ha_values)

        kwargs.setdefault("account_name", "")
        kwargs.setdefault("gw_name", "")
        return cls(**kwargs)

    def to_fields(self) -> dict[str, Any]:
        """Flatten to store fields. Inverse of from_fields."""
        values = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "ha"}
        values["cloud_type"] = int(self.cloud_type)
        for name in SET_FIELDS | LIST_FIELDS:
            values[name] = list(values[name])
        values["tags"] = dict(self.tags)
        ha = self.ha_or_empty()
        for f in fields(HaConfig):
            values[f"ha_{f.name}"] = getattr(ha, f.name)
        return values


HA_SUFFIX = "-hagw"

# Computed output holding the fingerprint of the last applied configuration
FINGERPRINT_KEY = "config_fingerprint"

# Compared order-insensitively by the store and the projector
SET_FIELDS = frozenset({
    "monitor_exclude_list",
    "approved_learned_cidrs",
    "private_route_table_config",
})
LIST_FIELDS = frozenset({
    "spoke_bgp_manual_advertise_cidrs",
    "prepend_as_path",
})
ROUTE_STRING_FIELDS = (
    "customized_spoke_vpc_routes",
    "filtered_spoke_vpc_routes",
    "included_advertised_spoke_routes",
)


def field_defaults() -> dict[str, Any]:
    """Default value of every flat store field."""
    defaults: dict[str, Any] = {}
    for f in fields(GatewayConfig):
        if f.name == "ha":
            continue
        if f.default_factory is not MISSING:
            defaults[f.name] = f.default_factory()
        elif f.default is not MISSING:
            defaults[f.name] = f.default
    for name in HA_FIELD_NAMES:
        defaults[name] = ""
    return defaults


FIELD_NAMES = ("cloud_type", "account_name", "gw_name", *field_defaults())


def split_routes(value: str) -> list[str]:
    """Split a comma-joined CIDR list, ignoring blanks."""
    return [cidr.strip() for cidr in (value or "").split(",") if cidr.strip()]


def comparable(name: str, value: Any) -> Any:
    """Normalize a field value so semantically equal values compare equal.

    Set fields and comma-joined route strings compare as sorted multisets.
    """
    if name in SET_FIELDS:
        return sorted(value or [])
    if name in ROUTE_STRING_FIELDS:
        return sorted(split_routes(value))
    if name in LIST_FIELDS:
        return list(value or [])
    if name == "tags":
        return dict(value or {})
    return value


# --- Remote representation ---

@dataclass
class RemoteGatewayState:
    """The control-plane's view of a gateway (or of its HA sibling)."""
    gw_name: str
    cloud_type: int
    account_name: str = ""
    vpc_id: str = ""
    vpc_region: str = ""
    vpc_net: str = ""
    gw_size: str = ""
    gateway_zone: str = ""
    fault_domain: str = ""
    public_ip: str = ""
    private_ip: str = ""
    cloud_instance_id: str = ""
    security_group_id: str = ""
    image_version: str = ""
    software_version: str = ""
    insane_mode: str = "no"
    enable_encrypt_volume: bool = False
    single_az: str = "yes"
    enable_nat: str = "no"
    snat_mode: str = ""
    enable_vpc_dns_server: str = "Disabled"
    jumbo_frame: bool = True
    enable_bgp: bool = False
    enable_bgp_over_lan: bool = False
    bgp_lan_interfaces_count: Optional[int] = None
    enable_ipv6: bool = False
    subnet_ipv6_cidr: str = ""
    insertion_gateway: bool = False
    tunnel_encryption_cipher: str = "default"
    tunnel_forward_secrecy: str = "disable"
    enable_learned_cidrs_approval: bool = False
    learned_cidrs_approval_mode: str = "gateway"
    enable_preserve_as_path: bool = False
    rx_queue_size: str = ""
    enable_global_vpc: bool = False
    local_as_number: str = ""
    bgp_ecmp: bool = False
    enable_active_standby: bool = False
    enable_active_standby_preemptive: bool = False
    disable_route_propagation: bool = False
    prepend_as_path: str = ""
    bgp_polling_time: int = 50
    bgp_bfd_polling_time: int = 5
    bgp_hold_time: int = 180
    tunnel_detection_time: Optional[int] = None
    reuse_eip: str = ""
    allocate_new_eip_read: bool = True
    enable_private_oob: bool = False
    oob_management_subnet: str = ""
    lb_vpc_id: str = ""
    customized_spoke_vpc_routes: list[str] = field(default_factory=list)
    filtered_spoke_vpc_routes: list[str] = field(default_factory=list)
    include_cidr_list: list[str] = field(default_factory=list)
    advertised_spoke_routes: list[str] = field(default_factory=list)
    monitor_subnets_action: str = "disable"
    monitor_exclude_gw_list: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    bgp_manual_spoke_advertise_cidrs: list[str] = field(default_factory=list)
    private_vpc_default_enabled: bool = False
    skip_public_vpc_update_enabled: bool = False
    auto_advertise_cidrs_enabled: bool = False
    private_route_table_config: list[str] = field(default_factory=list)
    enable_spot_instance: bool = False
    spot_price: str = ""
    delete_spot: bool = False
    # Folded in from separate reads
    gro_gso: bool = True
    bgp_send_communities: bool = False
    bgp_accept_communities: bool = False
    approved_learned_cidrs: list[str] = field(default_factory=list)
    ha_gw: Optional["RemoteGatewayState"] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteGatewayState":
        """Parse the controller's gateway JSON, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and k != "ha_gw" and v is not None}
        ha = data.get("ha_gw")
        if ha and ha.get("gw_name"):
            kwargs["ha_gw"] = cls.from_dict(ha)
        return cls(**kwargs)


# --- Requests ---

def _form(obj: Any) -> dict[str, Union[str, int]]:
    """Encode a request dataclass as form fields, omitting empty values."""
    form: dict[str, Union[str, int]] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value in ("", None, False):
            continue
        if value is True:
            value = "true"
        form[f.metadata.get("form", f.name)] = value
    return form


@dataclass
class SpokeGatewayRequest:
    """Launch request for a spoke gateway."""
    cloud_type: int
    account_name: str
    gw_name: str
    vpc_id: str
    gw_size: str
    subnet: str = field(default="", metadata={"form": "gw_subnet"})
    vpc_reg: str = field(default="", metadata={"form": "vpc_reg"})
    zone: str = ""
    availability_domain: str = ""
    fault_domain: str = ""
    enable_nat: str = ""
    single_az_ha: str = ""
    enable_bgp: str = ""
    insane_mode: str = "no"
    enc_volume: str = ""
    customer_managed_keys: str = ""
    bgp_over_lan: bool = False
    bgp_lan_interfaces_count: Optional[int] = None
    enable_private_oob: str = ""
    oob_management_subnet: str = ""
    tag_json: str = ""
    enable_spot_instance: bool = False
    spot_price: str = ""
    delete_spot: bool = False
    reuse_eip: str = ""
    eip: str = ""
    lb_vpc_id: str = field(default="", metadata={"form": "lb_vpc_id"})
    enable_global_vpc: bool = False
    insertion_gateway: bool = False
    enable_ipv6: bool = False
    tunnel_encryption_cipher: str = field(default="", metadata={"form": "ph2_encryption_policy"})
    tunnel_forward_secrecy: str = field(default="", metadata={"form": "ph2_pfs_policy"})

    def to_form(self) -> dict[str, Union[str, int]]:
        return _form(self)


@dataclass
class HaGatewayRequest:
    """Create request for the HA sibling of a spoke gateway."""
    primary_gw_name: str
    gw_name: str = field(metadata={"form": "ha_gw_name"})
    subnet: str = field(default="", metadata={"form": "gw_subnet"})
    gw_size: str = ""
    zone: str = ""
    availability_domain: str = ""
    fault_domain: str = ""
    eip: str = ""
    oob_management_subnet: str = ""
    insane_mode: str = "no"
    insertion_gateway: bool = False

    def to_form(self) -> dict[str, Union[str, int]]:
        return _form(self)


# --- Results ---

@dataclass
class ValidationResult:
    """Result of validating a gateway configuration."""
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> list[str]:
        return [str(e) for e in self.errors]

    def raise_first(self) -> None:
        """Raise the first violated rule, if any."""
        if self.errors:
            raise self.errors[0]


@dataclass
class UpdateCall:
    """One group of changed fields and the handler that applies it."""
    group: str
    fields: tuple[str, ...]
    changed: tuple[str, ...]


@dataclass
class UpdatePlan:
    """Ordered update groups for one update invocation."""
    gw_name: str
    calls: list[UpdateCall] = field(default_factory=list)
    ha_transition: HaTransition = HaTransition.NONE

    @property
    def no_change(self) -> bool:
        return not self.calls

    @property
    def groups(self) -> list[str]:
        return [call.group for call in self.calls]
