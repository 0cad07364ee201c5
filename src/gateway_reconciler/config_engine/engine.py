"""Primary lifecycle controller - drives create/read/update/delete of a spoke gateway.

Provides a single entry point per lifecycle phase:
1. create: validate, launch, correct remote defaults, apply declared features
2. read: fetch the remote gateway and record its projection
3. update: plan the changed field groups and issue only their calls
4. delete: remove the HA sibling first, then the primary

Create and update always finish with a read-back so the store records
what the controller actually holds.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..config.settings import ControllerSettings
from ..errors import NotFoundError
from ..utils.logging_config import timed
from .diff import ha_key, summarize_plan
from .executor import CallExecutor
from .ha import HaSiblingManager
from .marshaler import to_create_request, to_update_plan
from .projector import project, project_computed
from .schema import (
    AZURE_RELATED,
    FINGERPRINT_KEY,
    CloudType,
    GatewayConfig,
    HaTransition,
    LifecyclePhase,
    RemoteGatewayState,
    UpdateCall,
    UpdatePlan,
    split_routes,
)
from .validator import ConfigValidator

if TYPE_CHECKING:
    from ..client.base import ControlPlaneClient
    from ..config_store.store import GatewayStore

logger = logging.getLogger(__name__)

# Client setter that switches off each feature the controller enables on launch
REMOTE_DEFAULT_SETTERS = {
    "single_az_ha": "set_single_az",
    "enable_jumbo_frame": "set_jumbo_frame",
    "enable_gro_gso": "set_gro_gso",
}


@dataclass
class UpdateContext:
    """Everything an update group handler needs."""
    executor: CallExecutor
    ha: HaSiblingManager
    cfg: GatewayConfig
    store: "GatewayStore"
    plan: UpdatePlan
    call: UpdateCall

    def changed(self, name: str) -> bool:
        return name in self.call.changed


class GatewayLifecycleController:
    """
    Reconcile spoke gateways against the network controller.

    Usage:
        controller = GatewayLifecycleController(client, settings)
        controller.create(store)
        store.declare(ha_subnet="10.0.2.0/24", ha_gw_size="t3.medium")
        controller.update(store)
        controller.delete(store)
    """

    def __init__(self, client: "ControlPlaneClient", settings: Optional[ControllerSettings] = None):
        """
        Initialize the lifecycle controller.

        Args:
            client: Control-plane client every call goes through
            settings: Retry bounds and remote defaults (defaults if omitted)
        """
        self.client = client
        self.settings = settings or ControllerSettings()

    def _executor(self, cfg: GatewayConfig) -> CallExecutor:
        return CallExecutor(self.client, cfg.gw_name, wait_seconds=self.settings.retry_wait_seconds)

    @staticmethod
    def desired(store: "GatewayStore") -> GatewayConfig:
        """The declared configuration of a store as a GatewayConfig."""
        return GatewayConfig.from_fields(store.resolved())

    # --- Create ---

    @timed("create")
    def create(self, store: "GatewayStore") -> RemoteGatewayState:
        """
        Launch the gateway and apply every declared feature.

        The identifier is recorded right after launch, so a failure in a
        follow-up call leaves a store that the next update can resume from.

        Raises:
            ValidationError: If the configuration is rejected (nothing is launched)
            RemoteCallError: If a control-plane call fails
        """
        cfg = self.desired(store)
        executor = self._executor(cfg)
        name = cfg.gw_name

        private_mode = executor.read("get_private_mode_enabled")
        request = to_create_request(cfg, private_mode)

        store.phase = LifecyclePhase.CREATING
        logger.info(f"Creating spoke gateway {name} ({cfg.cloud_type.label})")
        store.set_identifier(executor.call("launch_spoke_gateway", request))

        self._correct_remote_defaults(executor, cfg)

        if cfg.bgp_accept_communities:
            executor.call("set_bgp_communities_accept", name, True)
        if cfg.bgp_send_communities:
            executor.call("set_bgp_communities_send", name, True)

        ha = HaSiblingManager(executor)
        if cfg.manage_ha_gateway and cfg.ha_enabled:
            ha.create(cfg)

        if cfg.enable_vpc_dns_server:
            executor.call("set_vpc_dns_server", name, True)

        self._create_routes(executor, cfg)

        if cfg.enable_monitor_gateway_subnets:
            executor.call("set_monitor_subnets", name, True, list(cfg.monitor_exclude_list))
        if cfg.enable_private_vpc_default_route:
            executor.call("set_private_vpc_default_route", name, True)
        if cfg.enable_skip_public_route_table_update:
            executor.call("set_skip_public_route_update", name, True)
        if cfg.enable_auto_advertise_s2c_cidrs:
            executor.call("set_auto_advertise_s2c_cidrs", name, True)
        if cfg.tunnel_detection_time is not None:
            executor.call("set_tunnel_detection_time", name, cfg.tunnel_detection_time)

        self._create_bgp(executor, cfg)

        if cfg.rx_queue_size:
            executor.call("set_rx_queue_size", name, cfg.rx_queue_size)
            if cfg.manage_ha_gateway and cfg.ha_enabled:
                ha.copy_rx_queue_size(cfg)

        if cfg.cloud_type.belongs_to(AZURE_RELATED) and cfg.private_route_table_config:
            executor.call("edit_private_route_tables", name, list(cfg.private_route_table_config))

        remote = self.read(store)
        store.set_computed(FINGERPRINT_KEY, store.fingerprint())
        logger.info(f"Created spoke gateway {name} ({len(executor.tracker.records)} calls)")
        return remote

    def _correct_remote_defaults(self, executor: CallExecutor, cfg: GatewayConfig) -> None:
        """Switch off the features the controller enables on every launch but the config declares off."""
        for field_name in self.settings.remote_defaults:
            setter = REMOTE_DEFAULT_SETTERS.get(field_name)
            if setter is None:
                logger.warning(f"No setter known for remote default '{field_name}', skipping")
                continue
            if not getattr(cfg, field_name):
                executor.call(setter, cfg.gw_name, False)

    def _create_routes(self, executor: CallExecutor, cfg: GatewayConfig) -> None:
        name = cfg.gw_name
        if cfg.customized_spoke_vpc_routes:
            executor.call_with_retry(
                "edit_customized_routes", name, split_routes(cfg.customized_spoke_vpc_routes),
                attempts=self.settings.route_edit_attempts,
            )
        if cfg.filtered_spoke_vpc_routes:
            executor.call_with_retry(
                "edit_filtered_routes", name, split_routes(cfg.filtered_spoke_vpc_routes),
                attempts=self.settings.route_edit_attempts,
            )
        if cfg.included_advertised_spoke_routes:
            executor.call_with_retry(
                "edit_advertised_cidrs", name, split_routes(cfg.included_advertised_spoke_routes),
                attempts=self.settings.advertised_cidr_attempts,
            )

    def _create_bgp(self, executor: CallExecutor, cfg: GatewayConfig) -> None:
        # Approval must be on before approved CIDRs are accepted
        name = cfg.gw_name
        if cfg.enable_learned_cidrs_approval:
            executor.call("set_learned_cidrs_approval", name, True, cfg.learned_cidrs_approval_mode)
        if cfg.approved_learned_cidrs:
            executor.call("set_approved_learned_cidrs", name, list(cfg.approved_learned_cidrs))
        if cfg.spoke_bgp_manual_advertise_cidrs:
            executor.call("set_bgp_manual_advertise_cidrs", name, list(cfg.spoke_bgp_manual_advertise_cidrs))
        if cfg.bgp_ecmp:
            executor.call("set_bgp_ecmp", name, True)
        if cfg.enable_active_standby:
            executor.call("set_active_standby", name, True, cfg.enable_active_standby_preemptive)
        if cfg.disable_route_propagation:
            executor.call("set_route_propagation", name, False)
        if cfg.local_as_number:
            executor.call("set_local_as_number", name, cfg.local_as_number)
        if cfg.prepend_as_path:
            executor.call("set_prepend_as_path", name, list(cfg.prepend_as_path))
        if cfg.bgp_polling_time >= 10 and cfg.bgp_polling_time != 50:
            executor.call("set_bgp_polling_time", name, cfg.bgp_polling_time)
        if cfg.bgp_neighbor_status_polling_time >= 1 and cfg.bgp_neighbor_status_polling_time != 5:
            executor.call("set_bgp_bfd_polling_time", name, cfg.bgp_neighbor_status_polling_time)
        if cfg.bgp_hold_time != 180:
            executor.call("set_bgp_hold_time", name, cfg.bgp_hold_time)
        if cfg.enable_preserve_as_path:
            executor.call("set_preserve_as_path", name, True)

    # --- Read ---

    @timed("read")
    def read(self, store: "GatewayStore", imported: bool = False) -> Optional[RemoteGatewayState]:
        """
        Fetch the remote gateway and record its projection in the store.

        Args:
            store: The gateway's store
            imported: Report optional placement values even when undeclared

        Returns:
            The remote state, or None when the gateway no longer exists (the
            store identifier is cleared)

        Raises:
            RemoteCallError: For failures other than "not found"
        """
        cfg = self.desired(store)
        executor = self._executor(cfg)
        name = store.identifier() or cfg.gw_name

        try:
            remote = self._fetch(executor, name, cfg)
        except NotFoundError:
            logger.warning(f"Spoke gateway {name} not found, marking it absent")
            store.set_identifier("")
            return None

        self._record(store, remote, cfg, imported)
        return remote

    def _fetch(self, executor: CallExecutor, name: str, cfg: GatewayConfig) -> RemoteGatewayState:
        """Get the gateway and fold in the settings the controller reports separately."""
        remote = executor.read("get_gateway", name)
        if remote.enable_bgp or cfg.bgp_send_communities or cfg.bgp_accept_communities:
            remote.bgp_send_communities, remote.bgp_accept_communities = executor.read(
                "get_bgp_communities", name
            )
        remote.gro_gso = executor.read("get_gro_gso_status", name)
        if remote.enable_learned_cidrs_approval:
            remote.approved_learned_cidrs = executor.read("get_approved_learned_cidrs", name)
        return remote

    @staticmethod
    def _record(store: "GatewayStore", remote: RemoteGatewayState, cfg: GatewayConfig, imported: bool) -> None:
        projected = project(remote, cfg, imported)
        store.record_state(projected.to_fields())
        for key, value in project_computed(remote).items():
            store.set_computed(key, value)
        if not store.identifier():
            store.set_identifier(remote.gw_name)
        store.phase = LifecyclePhase.PRESENT

    def import_gateway(self, store: "GatewayStore", name: str) -> Optional[RemoteGatewayState]:
        """
        Adopt an existing gateway into an empty store.

        The projection becomes both the declared and the recorded
        configuration, so the adopted gateway starts in sync.

        Returns:
            The remote state, or None if no such gateway exists
        """
        executor = CallExecutor(self.client, name, wait_seconds=self.settings.retry_wait_seconds)
        try:
            remote = executor.read("get_gateway", name)
        except NotFoundError:
            logger.warning(f"Spoke gateway {name} not found, nothing to import")
            return None

        store.config = {
            "cloud_type": remote.cloud_type,
            "account_name": remote.account_name,
            "gw_name": remote.gw_name,
        }
        store.set_identifier(remote.gw_name)
        remote = self.read(store, imported=True)
        if remote is not None:
            store.config = dict(store.state)
            store.set_computed(FINGERPRINT_KEY, store.fingerprint())
        return remote

    # --- Update ---

    def plan(self, store: "GatewayStore") -> UpdatePlan:
        """Plan an update without issuing any call."""
        return to_update_plan(store)

    def preview(self, store: "GatewayStore") -> str:
        """
        Preview an update without applying it.

        Returns human-readable plan summary.
        """
        return summarize_plan(self.plan(store))

    @timed("update")
    def update(self, store: "GatewayStore") -> UpdatePlan:
        """
        Issue the calls of every changed field group, then read back.

        Nothing is sent when no declared field changed.

        Raises:
            ImmutableFieldError: If a create-only field changed (no call issued)
            ValidationError: If the configuration is rejected (no mutation issued)
            RemoteCallError: If a control-plane call fails
        """
        plan = to_update_plan(store)
        if plan.no_change:
            logger.info(summarize_plan(plan))
            return plan
        if store.computed.get(FINGERPRINT_KEY) == store.fingerprint():
            logger.debug(f"{plan.gw_name}: configuration unchanged since last apply, reconciling drift")

        cfg = self.desired(store)
        executor = self._executor(cfg)
        ha = HaSiblingManager(executor)

        private_mode = executor.read("get_private_mode_enabled")
        ConfigValidator(private_mode).check(cfg)
        ha.validate(plan.ha_transition, cfg)

        store.phase = LifecyclePhase.UPDATING
        logger.info(summarize_plan(plan))
        for call in plan.calls:
            handler = getattr(self, f"_apply_{call.group}")
            handler(UpdateContext(executor, ha, cfg, store, plan, call))

        self.read(store)
        store.set_computed(FINGERPRINT_KEY, store.fingerprint())
        return plan

    # Update group handlers, one per entry of UPDATE_GROUPS

    def _apply_bgp_communities(self, ctx: UpdateContext) -> None:
        if ctx.changed("bgp_accept_communities"):
            ctx.executor.call("set_bgp_communities_accept", ctx.cfg.gw_name, ctx.cfg.bgp_accept_communities)
        if ctx.changed("bgp_send_communities"):
            ctx.executor.call("set_bgp_communities_send", ctx.cfg.gw_name, ctx.cfg.bgp_send_communities)

    def _apply_private_route_tables(self, ctx: UpdateContext) -> None:
        ctx.executor.call("edit_private_route_tables", ctx.cfg.gw_name, list(ctx.cfg.private_route_table_config))

    def _apply_preserve_as_path(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_preserve_as_path", ctx.cfg.gw_name, ctx.cfg.enable_preserve_as_path)

    def _apply_tags(self, ctx: UpdateContext) -> None:
        ctx.executor.call("update_tags", int(ctx.cfg.cloud_type), ctx.cfg.gw_name, dict(ctx.cfg.tags))

    def _apply_gw_size(self, ctx: UpdateContext) -> None:
        ctx.executor.call("update_gateway_size", ctx.cfg.gw_name, ctx.cfg.gw_size)

    def _apply_ha_sibling(self, ctx: UpdateContext) -> None:
        if ctx.plan.ha_transition == HaTransition.RESIZE:
            return
        ctx.ha.apply(
            ctx.plan.ha_transition,
            ctx.cfg,
            rx_queue_unchanged=not ctx.store.has_changed("rx_queue_size"),
        )

    def _apply_single_az(self, ctx: UpdateContext) -> None:
        enabled = ctx.cfg.single_az_ha
        ctx.executor.call("set_single_az", ctx.cfg.gw_name, enabled)
        if ctx.cfg.manage_ha_gateway and ctx.cfg.ha_enabled:
            ctx.executor.call("set_single_az", ctx.cfg.ha_name, enabled)

    def _apply_ha_size(self, ctx: UpdateContext) -> None:
        if ctx.plan.ha_transition == HaTransition.RESIZE:
            ctx.ha.apply(HaTransition.RESIZE, ctx.cfg)

    def _apply_snat(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_snat", ctx.cfg.gw_name, ctx.cfg.single_ip_snat)

    def _apply_vpc_dns_server(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_vpc_dns_server", ctx.cfg.gw_name, ctx.cfg.enable_vpc_dns_server)

    def _apply_learned_cidrs_approval(self, ctx: UpdateContext) -> None:
        ctx.executor.call(
            "set_learned_cidrs_approval",
            ctx.cfg.gw_name,
            ctx.cfg.enable_learned_cidrs_approval,
            ctx.cfg.learned_cidrs_approval_mode,
        )

    def _apply_approved_learned_cidrs(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_approved_learned_cidrs", ctx.cfg.gw_name, list(ctx.cfg.approved_learned_cidrs))

    def _apply_encrypt_volume(self, ctx: UpdateContext) -> None:
        # Disabling is rejected while planning
        ctx.executor.call("enable_encrypt_volume", ctx.cfg.gw_name, ctx.cfg.customer_managed_keys or None)

    def _apply_customized_routes(self, ctx: UpdateContext) -> None:
        ctx.executor.call_with_retry(
            "edit_customized_routes", ctx.cfg.gw_name, split_routes(ctx.cfg.customized_spoke_vpc_routes),
            attempts=self.settings.route_edit_attempts,
        )

    def _apply_filtered_routes(self, ctx: UpdateContext) -> None:
        ctx.executor.call_with_retry(
            "edit_filtered_routes", ctx.cfg.gw_name, split_routes(ctx.cfg.filtered_spoke_vpc_routes),
            attempts=self.settings.route_edit_attempts,
        )

    def _apply_advertised_cidrs(self, ctx: UpdateContext) -> None:
        ctx.executor.call_with_retry(
            "edit_advertised_cidrs", ctx.cfg.gw_name, split_routes(ctx.cfg.included_advertised_spoke_routes),
            attempts=self.settings.advertised_cidr_attempts,
        )

    def _apply_monitor_subnets(self, ctx: UpdateContext) -> None:
        name = ctx.cfg.gw_name
        enabled = ctx.cfg.enable_monitor_gateway_subnets
        excluded = list(ctx.cfg.monitor_exclude_list)
        if enabled and ctx.call.changed == ("monitor_exclude_list",):
            # The exclude list can only be replaced by re-enabling monitoring
            ctx.executor.call("set_monitor_subnets", name, False, [])
        ctx.executor.call("set_monitor_subnets", name, enabled, excluded)

    def _apply_jumbo_frame(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_jumbo_frame", ctx.cfg.gw_name, ctx.cfg.enable_jumbo_frame)

    def _apply_gro_gso(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_gro_gso", ctx.cfg.gw_name, ctx.cfg.enable_gro_gso)

    def _apply_private_vpc_default_route(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_private_vpc_default_route", ctx.cfg.gw_name, ctx.cfg.enable_private_vpc_default_route)

    def _apply_skip_public_route_table(self, ctx: UpdateContext) -> None:
        ctx.executor.call(
            "set_skip_public_route_update", ctx.cfg.gw_name, ctx.cfg.enable_skip_public_route_table_update
        )

    def _apply_auto_advertise_s2c(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_auto_advertise_s2c_cidrs", ctx.cfg.gw_name, ctx.cfg.enable_auto_advertise_s2c_cidrs)

    def _apply_tunnel_detection_time(self, ctx: UpdateContext) -> None:
        seconds = ctx.cfg.tunnel_detection_time
        if seconds is None:
            # Cleared: fall back to the controller-wide value
            seconds = ctx.executor.read("get_tunnel_detection_time")
        ctx.executor.call("set_tunnel_detection_time", ctx.cfg.gw_name, seconds)

    def _apply_bgp_manual_advertise_cidrs(self, ctx: UpdateContext) -> None:
        ctx.executor.call(
            "set_bgp_manual_advertise_cidrs", ctx.cfg.gw_name, list(ctx.cfg.spoke_bgp_manual_advertise_cidrs)
        )

    def _apply_bgp_ecmp(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_bgp_ecmp", ctx.cfg.gw_name, ctx.cfg.bgp_ecmp)

    def _apply_active_standby(self, ctx: UpdateContext) -> None:
        ctx.executor.call(
            "set_active_standby",
            ctx.cfg.gw_name,
            ctx.cfg.enable_active_standby,
            ctx.cfg.enable_active_standby_preemptive,
        )

    def _apply_as_path(self, ctx: UpdateContext) -> None:
        name = ctx.cfg.gw_name
        prepend_changed = ctx.changed("prepend_as_path")
        local_changed = ctx.changed("local_as_number")
        # A prepend path must not outlive the AS number it was built from
        if prepend_changed and (local_changed or not ctx.cfg.prepend_as_path):
            ctx.executor.call("set_prepend_as_path", name, [])
        if local_changed:
            ctx.executor.call("set_local_as_number", name, ctx.cfg.local_as_number)
        if prepend_changed and ctx.cfg.prepend_as_path:
            ctx.executor.call("set_prepend_as_path", name, list(ctx.cfg.prepend_as_path))

    def _apply_bgp_polling_time(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_bgp_polling_time", ctx.cfg.gw_name, ctx.cfg.bgp_polling_time)

    def _apply_bgp_bfd_polling_time(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_bgp_bfd_polling_time", ctx.cfg.gw_name, ctx.cfg.bgp_neighbor_status_polling_time)

    def _apply_bgp_hold_time(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_bgp_hold_time", ctx.cfg.gw_name, ctx.cfg.bgp_hold_time)

    def _apply_route_propagation(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_route_propagation", ctx.cfg.gw_name, not ctx.cfg.disable_route_propagation)

    def _apply_rx_queue_size(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_rx_queue_size", ctx.cfg.gw_name, ctx.cfg.rx_queue_size)
        if ctx.cfg.manage_ha_gateway and ctx.cfg.ha_enabled:
            ctx.ha.copy_rx_queue_size(ctx.cfg)

    def _apply_global_vpc(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_global_vpc", ctx.cfg.gw_name, ctx.cfg.enable_global_vpc)

    def _apply_ipv6(self, ctx: UpdateContext) -> None:
        ctx.executor.call("set_ipv6", ctx.cfg.gw_name, ctx.cfg.enable_ipv6)

    def _apply_tunnel_encryption(self, ctx: UpdateContext) -> None:
        ctx.executor.call(
            "set_phase2_policy",
            ctx.cfg.gw_name,
            ctx.cfg.tunnel_encryption_cipher,
            ctx.cfg.tunnel_forward_secrecy,
        )

    # --- Delete ---

    @timed("delete")
    def delete(self, store: "GatewayStore") -> None:
        """
        Delete the HA sibling (if any), then the primary.

        Raises:
            RemoteCallError: If a delete call fails
        """
        cfg = self.desired(store)
        executor = self._executor(cfg)
        cloud_type = CloudType(cfg.cloud_type)

        store.phase = LifecyclePhase.DELETING
        # recorded state is authoritative once the gateway has been read
        if store.state:
            has_sibling = bool(store.recorded(ha_key(cloud_type)))
        else:
            has_sibling = cfg.ha_enabled
        if cfg.manage_ha_gateway and has_sibling:
            HaSiblingManager(executor).delete(cfg, missing_ok=True)

        executor.call("delete_gateway", int(cloud_type), store.identifier() or cfg.gw_name)
        store.set_identifier("")
        store.record_state({})
        store.computed.clear()
        logger.info(f"Deleted spoke gateway {cfg.gw_name}")
