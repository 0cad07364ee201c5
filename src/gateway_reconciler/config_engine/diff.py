"""Change detection between the declared and the last recorded configuration.

Computes which fields changed and what the HA sibling has to go through
to reach its declared state.
"""
from ..errors import ValidationError
from .schema import (
    FIELD_NAMES,
    GCP_RELATED,
    CloudType,
    HaTransition,
    UpdatePlan,
)

# HA fields whose change forces the sibling to be rebuilt
RECREATE_FIELDS = (
    "ha_oob_management_subnet",
    "ha_oob_availability_zone",
    "ha_private_mode_subnet_zone",
    "ha_availability_domain",
    "ha_fault_domain",
    "ha_subnet_ipv6_cidr",
)


def changed_fields(store) -> list[str]:
    """Names of every declared field whose value differs from the recorded one."""
    return [name for name in FIELD_NAMES if store.has_changed(name)]


def ha_key(cloud_type: CloudType) -> str:
    """The field whose presence decides whether the sibling exists."""
    return "ha_zone" if cloud_type.belongs_to(GCP_RELATED) else "ha_subnet"


def classify_ha_transition(store) -> HaTransition:
    """
    Classify the HA sibling change of one update.

    | old     | new     | transition                         |
    |---------|---------|------------------------------------|
    | absent  | absent  | NONE                               |
    | absent  | present | CREATE                             |
    | present | absent  | DELETE                             |
    | present | present | RECREATE if placement changed,     |
    |         |         | RESIZE if only the size changed    |

    Raises:
        ValidationError: If the insane mode AZ changes without the subnet
    """
    cloud_type = CloudType(int(store.get_field("cloud_type")))
    key = ha_key(cloud_type)
    old, new = store.get_change(key)

    if not old and not new:
        return HaTransition.NONE
    if not old:
        return HaTransition.CREATE
    if not new:
        return HaTransition.DELETE

    if store.has_changed("ha_insane_mode_az") and not store.has_changed("ha_subnet"):
        raise ValidationError(
            "ha_insane_mode_az", "can only be changed together with ha_subnet"
        )

    placement_fields = ["ha_subnet", "ha_zone", *RECREATE_FIELDS]
    if any(store.has_changed(name) for name in placement_fields):
        return HaTransition.RECREATE
    if store.has_changed("ha_gw_size"):
        return HaTransition.RESIZE
    return HaTransition.NONE


def summarize_plan(plan: UpdatePlan) -> str:
    """
    Create a human-readable summary of an update plan.

    Useful for dry-run output and logging.
    """
    if plan.no_change:
        return f"No changes needed - {plan.gw_name} matches the declared configuration"

    lines = [f"Changes to apply to {plan.gw_name} ({len(plan.calls)} groups):", ""]
    for call in plan.calls:
        lines.append(f"  [~] {call.group}")
        lines.append(f"      Fields: {', '.join(call.changed)}")
    if plan.ha_transition != HaTransition.NONE:
        lines.append("")
        lines.append(f"  HA gateway: {plan.ha_transition.value}")

    return "\n".join(lines)
