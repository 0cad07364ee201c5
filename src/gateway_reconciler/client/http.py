"""HTTP client for the network controller API.

The controller exposes one form-POST endpoint. Every request carries an
``action`` and the session ``CID``; every response is JSON of the form
``{"return": bool, "reason": str, "results": ...}``.

Failed responses are translated once, here: "does not exist" becomes
NotFoundError, a known not-ready reason becomes a
TransientProvisioningError carrying its TransientCondition marker, and
anything else a ControllerError.
"""
import json
import logging
from typing import Any, Optional

import httpx

from ..config.settings import ControllerSettings
from ..config_engine.schema import (
    HaGatewayRequest,
    RemoteGatewayState,
    SpokeGatewayRequest,
)
from ..errors import (
    ControllerError,
    NotFoundError,
    TransientCondition,
    TransientProvisioningError,
)
from .base import CONTROLLER_SCOPE, ControlPlaneClient

logger = logging.getLogger(__name__)

API_PATH = "/v1/api"
NOT_FOUND_REASON = "does not exist"
EXPIRED_SESSION_REASON = "CID is invalid or expired"


class HttpControllerClient(ControlPlaneClient):
    """Network controller client over the form-POST API."""

    def __init__(self, settings: ControllerSettings, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize the client.

        Args:
            settings: Controller URL, credentials and timeouts
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._cid: Optional[str] = None
        self._http = httpx.Client(
            base_url=settings.url.rstrip("/"),
            timeout=httpx.Timeout(settings.timeout),
            verify=settings.verify_ssl,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    # Session and transport

    def login(self) -> str:
        """Open a session and return its CID."""
        logger.info(f"Logging in to controller {self.settings.url} as {self.settings.username}")
        data = self._send({
            "action": "login",
            "username": self.settings.username,
            "password": self.settings.get_password(),
        })
        if not data.get("return"):
            raise ControllerError("login", data.get("reason", "unknown error"))
        self._cid = data["CID"]
        return self._cid

    def _send(self, form: dict[str, Any]) -> dict:
        try:
            resp = self._http.post(API_PATH, data=form)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            raise ControllerError(form.get("action", "request"), str(e)) from e
        except json.JSONDecodeError as e:
            raise ControllerError(form.get("action", "request"), f"invalid JSON response: {e}") from e

    def _post(self, action: str, **form: Any) -> Any:
        """Call an API action and return its ``results``.

        Raises:
            NotFoundError: The referenced object does not exist
            TransientProvisioningError: The target gateway is not ready yet
            ControllerError: Any other failure
        """
        if self._cid is None:
            self.login()

        payload = {k: _form_value(v) for k, v in form.items() if v is not None}
        logger.debug(f"POST {action} {payload}")
        data = self._send({"action": action, "CID": self._cid, **payload})

        if not data.get("return") and EXPIRED_SESSION_REASON in data.get("reason", ""):
            logger.info("Controller session expired, logging in again")
            self.login()
            data = self._send({"action": action, "CID": self._cid, **payload})

        if data.get("return"):
            return data.get("results")

        reason = data.get("reason", "unknown error")
        marker = TransientCondition.from_reason(reason)
        if marker is not None:
            raise TransientProvisioningError(action, marker, reason)
        if NOT_FOUND_REASON in reason:
            raise NotFoundError(form.get("gateway_name") or form.get("gw_name") or action)
        raise ControllerError(action, reason)

    def _toggle(self, enable_action: str, disable_action: str, name: str, enabled: bool, **form: Any) -> None:
        self._post(enable_action if enabled else disable_action, gateway_name=name, **form)

    # Controller

    def get_private_mode_enabled(self) -> bool:
        results = self._post("get_private_mode_info")
        return bool(results and results.get("private_mode"))

    # Gateway lifecycle

    def launch_spoke_gateway(self, req: SpokeGatewayRequest) -> str:
        self._post("create_multicloud_primary_gateway", gw_type="spoke", **req.to_form())
        return req.gw_name

    def get_gateway(self, name: str) -> RemoteGatewayState:
        results = self._post("get_gateway_info", gateway_name=name)
        if not results:
            raise NotFoundError(name)
        return RemoteGatewayState.from_dict(results)

    def update_gateway_size(self, name: str, size: str) -> None:
        self._post("edit_gw_config", gateway_name=name, gw_size=size)

    def delete_gateway(self, cloud_type: int, name: str) -> None:
        self._post("delete_container", cloud_type=cloud_type, gw_name=name)

    def create_ha_gateway(self, req: HaGatewayRequest) -> str:
        self._post("create_multicloud_ha_gateway", **req.to_form())
        return req.gw_name

    # BGP communities

    def get_bgp_communities(self, name: str) -> tuple[bool, bool]:
        results = self._post("get_gateway_bgp_communities", gateway_name=name) or {}
        return bool(results.get("send_communities")), bool(results.get("accept_communities"))

    def set_bgp_communities_accept(self, name: str, enabled: bool) -> None:
        self._post("set_gateway_accept_bgp_communities_override", gateway_name=name, accept=enabled)

    def set_bgp_communities_send(self, name: str, enabled: bool) -> None:
        self._post("set_gateway_send_bgp_communities_override", gateway_name=name, send=enabled)

    # Single attribute toggles

    def set_single_az(self, name: str, enabled: bool) -> None:
        self._toggle("enable_single_az_ha", "disable_single_az_ha", name, enabled)

    def set_vpc_dns_server(self, name: str, enabled: bool) -> None:
        self._toggle("enable_vpc_dns_server", "disable_vpc_dns_server", name, enabled)

    def set_jumbo_frame(self, name: str, enabled: bool) -> None:
        self._toggle("enable_jumbo_frame", "disable_jumbo_frame", name, enabled)

    def set_gro_gso(self, name: str, enabled: bool) -> None:
        self._toggle("enable_gro_gso", "disable_gro_gso", name, enabled)

    def get_gro_gso_status(self, name: str) -> bool:
        results = self._post("get_gro_gso_status", gateway_name=name) or {}
        return bool(results.get("gro_gso"))

    def set_private_vpc_default_route(self, name: str, enabled: bool) -> None:
        self._toggle("enable_private_vpc_default_route", "disable_private_vpc_default_route", name, enabled)

    def set_skip_public_route_update(self, name: str, enabled: bool) -> None:
        self._toggle(
            "enable_skip_public_route_table_update", "disable_skip_public_route_table_update", name, enabled
        )

    def set_auto_advertise_s2c_cidrs(self, name: str, enabled: bool) -> None:
        self._toggle("enable_auto_advertise_s2c_cidrs", "disable_auto_advertise_s2c_cidrs", name, enabled)

    def set_snat(self, name: str, enabled: bool) -> None:
        self._toggle("enable_snat", "disable_snat", name, enabled, mode="primary")

    def set_global_vpc(self, name: str, enabled: bool) -> None:
        self._toggle("enable_global_vpc", "disable_global_vpc", name, enabled)

    def set_ipv6(self, name: str, enabled: bool) -> None:
        self._toggle("enable_ipv6", "disable_ipv6", name, enabled)

    # Routes

    def edit_customized_routes(self, name: str, cidrs: list[str]) -> None:
        self._post("edit_gateway_custom_routes", gateway_name=name, cidr=",".join(cidrs))

    def edit_filtered_routes(self, name: str, cidrs: list[str]) -> None:
        self._post("edit_gateway_filter_routes", gateway_name=name, cidr=",".join(cidrs))

    def edit_advertised_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._post("edit_gateway_advertised_cidr", gateway_name=name, cidr=",".join(cidrs))

    def edit_private_route_tables(self, name: str, route_tables: list[str]) -> None:
        self._post("edit_private_route_table_config", gateway_name=name, route_table_list=",".join(route_tables))

    # Monitoring and timers

    def set_monitor_subnets(self, name: str, enabled: bool, excluded: list[str]) -> None:
        if enabled:
            self._post("enable_monitor_gateway_subnets", gateway_name=name, monitor_exclude_gateways=",".join(excluded))
        else:
            self._post("disable_monitor_gateway_subnets", gateway_name=name)

    def set_tunnel_detection_time(self, name: str, seconds: int) -> None:
        self._post("modify_detection_time", entity=name, detection_time=seconds)

    def get_tunnel_detection_time(self, name: str = CONTROLLER_SCOPE) -> int:
        results = self._post("get_detection_time", entity=name) or {}
        return int(results.get("detection_time", 0))

    # Learned CIDR approval

    def set_learned_cidrs_approval(self, name: str, enabled: bool, mode: str) -> None:
        self._toggle(
            "enable_bgp_gateway_cidr_approval", "disable_bgp_gateway_cidr_approval", name, enabled,
            mode=mode,
        )

    def set_approved_learned_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._post("set_bgp_gateway_approved_cidr_rules", gateway_name=name, approved_learned_cidrs=",".join(cidrs))

    def get_approved_learned_cidrs(self, name: str) -> list[str]:
        results = self._post("get_bgp_gateway_approved_cidr_rules", gateway_name=name) or {}
        return list(results.get("approved_learned_cidrs", []))

    # BGP settings

    def set_bgp_manual_advertise_cidrs(self, name: str, cidrs: list[str]) -> None:
        self._post("edit_aviatrix_spoke_advertised_cidrs", gateway_name=name, cidr=",".join(cidrs))

    def set_bgp_ecmp(self, name: str, enabled: bool) -> None:
        self._toggle("enable_bgp_ecmp", "disable_bgp_ecmp", name, enabled)

    def set_active_standby(self, name: str, enabled: bool, preemptive: bool = False) -> None:
        if enabled:
            self._post("enable_active_standby", gateway_name=name, preemptive=preemptive)
        else:
            self._post("disable_active_standby", gateway_name=name)

    def set_route_propagation(self, name: str, enabled: bool) -> None:
        self._toggle("enable_gateway_route_propagation", "disable_gateway_route_propagation", name, enabled)

    def set_local_as_number(self, name: str, asn: str) -> None:
        self._post("edit_local_as_number", gateway_name=name, local_as_num=asn)

    def set_prepend_as_path(self, name: str, path: list[str]) -> None:
        self._post("edit_prepend_as_path", gateway_name=name, prepend_as_path=" ".join(path))

    def set_bgp_polling_time(self, name: str, seconds: int) -> None:
        self._post("change_bgp_polling_time", gateway_name=name, bgp_polling_time=seconds)

    def set_bgp_bfd_polling_time(self, name: str, seconds: int) -> None:
        self._post("change_bgp_neighbor_status_polling_time", gateway_name=name, bgp_neighbor_status_polling_time=seconds)

    def set_bgp_hold_time(self, name: str, seconds: int) -> None:
        self._post("change_bgp_hold_time", gateway_name=name, bgp_hold_time=seconds)

    def set_preserve_as_path(self, name: str, enabled: bool) -> None:
        self._toggle("enable_spoke_preserve_as_path", "disable_spoke_preserve_as_path", name, enabled)

    # Instance settings

    def set_rx_queue_size(self, name: str, size: str) -> None:
        self._post("modify_rx_queue_size", gateway_name=name, rx_queue_size=size)

    def enable_encrypt_volume(self, name: str, customer_managed_keys: Optional[str] = None) -> None:
        self._post("encrypt_gateway_volume", gateway_name=name, customer_managed_keys=customer_managed_keys or None)

    def update_tags(self, cloud_type: int, name: str, tags: dict[str, str]) -> None:
        self._post(
            "update_tags",
            cloud_type=cloud_type,
            resource_type="gw",
            resource_name=name,
            new_tag_list=json.dumps(tags, sort_keys=True),
        )

    def set_phase2_policy(self, name: str, cipher: str, forward_secrecy: str) -> None:
        self._post(
            "update_gateway_ph2_policy",
            gateway_name=name,
            ph2_encryption_policy=cipher,
            ph2_pfs_policy=forward_secrecy,
        )


def _form_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value
