"""Control-plane client abstraction.

The reconciler talks to the network controller only through this
interface. Every mutating operation either succeeds, raises a
ControllerError (possibly a TransientProvisioningError), or, for reads,
raises NotFoundError when the object does not exist.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config_engine.schema import (
    HaGatewayRequest,
    RemoteGatewayState,
    SpokeGatewayRequest,
)

logger = logging.getLogger(__name__)

# Gateway name the controller uses for controller-wide settings
CONTROLLER_SCOPE = "Controller"


class ControlPlaneClient(ABC):
    """Abstract base class for network controller clients."""

    # Controller
    @abstractmethod
    def get_private_mode_enabled(self) -> bool:
        """Whether the controller runs in private mode."""
        pass

    # Gateway lifecycle
    @abstractmethod
    def launch_spoke_gateway(self, req: SpokeGatewayRequest) -> str:
        """Launch a spoke gateway.

        Returns:
            The identifier of the new gateway (its name)
        """
        pass

    @abstractmethod
    def get_gateway(self, name: str) -> RemoteGatewayState:
        """Fetch a gateway, including its HA sibling when one exists.

        Raises:
            NotFoundError: If the gateway does not exist
        """
        pass

    @abstractmethod
    def update_gateway_size(self, name: str, size: str) -> None:
        pass

    @abstractmethod
    def delete_gateway(self, cloud_type: int, name: str) -> None:
        pass

    @abstractmethod
    def create_ha_gateway(self, req: HaGatewayRequest) -> str:
        """Create the HA sibling of a spoke gateway.

        Returns:
            The name of the sibling
        """
        pass

    # BGP communities
    @abstractmethod
    def get_bgp_communities(self, name: str) -> tuple[bool, bool]:
        """Returns:
            Tuple of (send, accept)
        """
        pass

    @abstractmethod
    def set_bgp_communities_accept(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_bgp_communities_send(self, name: str, enabled: bool) -> None:
        pass

    # Single attribute toggles
    @abstractmethod
    def set_single_az(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_vpc_dns_server(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_jumbo_frame(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_gro_gso(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def get_gro_gso_status(self, name: str) -> bool:
        pass

    @abstractmethod
    def set_private_vpc_default_route(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_skip_public_route_update(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_auto_advertise_s2c_cidrs(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_snat(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_global_vpc(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_ipv6(self, name: str, enabled: bool) -> None:
        pass

    # Routes
    @abstractmethod
    def edit_customized_routes(self, name: str, cidrs: list[str]) -> None:
        pass

    @abstractmethod
    def edit_filtered_routes(self, name: str, cidrs: list[str]) -> None:
        pass

    @abstractmethod
    def edit_advertised_cidrs(self, name: str, cidrs: list[str]) -> None:
        pass

    @abstractmethod
    def edit_private_route_tables(self, name: str, route_tables: list[str]) -> None:
        pass

    # Monitoring and timers
    @abstractmethod
    def set_monitor_subnets(self, name: str, enabled: bool, excluded: list[str]) -> None:
        pass

    @abstractmethod
    def set_tunnel_detection_time(self, name: str, seconds: int) -> None:
        pass

    @abstractmethod
    def get_tunnel_detection_time(self, name: str = CONTROLLER_SCOPE) -> int:
        """Tunnel detection time of a gateway, or the controller-wide value."""
        pass

    # Learned CIDR approval
    @abstractmethod
    def set_learned_cidrs_approval(self, name: str, enabled: bool, mode: str) -> None:
        pass

    @abstractmethod
    def set_approved_learned_cidrs(self, name: str, cidrs: list[str]) -> None:
        pass

    @abstractmethod
    def get_approved_learned_cidrs(self, name: str) -> list[str]:
        pass

    # BGP settings
    @abstractmethod
    def set_bgp_manual_advertise_cidrs(self, name: str, cidrs: list[str]) -> None:
        pass

    @abstractmethod
    def set_bgp_ecmp(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_active_standby(self, name: str, enabled: bool, preemptive: bool = False) -> None:
        pass

    @abstractmethod
    def set_route_propagation(self, name: str, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_local_as_number(self, name: str, asn: str) -> None:
        pass

    @abstractmethod
    def set_prepend_as_path(self, name: str, path: list[str]) -> None:
        pass

    @abstractmethod
    def set_bgp_polling_time(self, name: str, seconds: int) -> None:
        pass

    @abstractmethod
    def set_bgp_bfd_polling_time(self, name: str, seconds: int) -> None:
        pass

    @abstractmethod
    def set_bgp_hold_time(self, name: str, seconds: int) -> None:
        pass

    @abstractmethod
    def set_preserve_as_path(self, name: str, enabled: bool) -> None:
        pass

    # Instance settings
    @abstractmethod
    def set_rx_queue_size(self, name: str, size: str) -> None:
        pass

    @abstractmethod
    def enable_encrypt_volume(self, name: str, customer_managed_keys: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def update_tags(self, cloud_type: int, name: str, tags: dict[str, str]) -> None:
        pass

    @abstractmethod
    def set_phase2_policy(self, name: str, cipher: str, forward_secrecy: str) -> None:
        """Tunnel encryption cipher and forward secrecy."""
        pass

    def close(self) -> None:
        """Release any held connection."""
        pass

    # Context manager support
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
