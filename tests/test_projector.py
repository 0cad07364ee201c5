"""Tests for projecting the controller's view onto the declared configuration."""
import pytest

from gateway_reconciler.client import InMemoryController
from gateway_reconciler.config_engine import RemoteGatewayState, project, project_computed
from gateway_reconciler.config_engine.marshaler import to_create_request, to_ha_request
from gateway_reconciler.config_engine.projector import COMPUTED_FIELDS


def launch(cfg, private_mode=False):
    """Launch a config (and its sibling) on a fresh in-memory controller and read it back."""
    client = InMemoryController(private_mode=private_mode)
    client.launch_spoke_gateway(to_create_request(cfg, private_mode))
    if cfg.ha_enabled:
        client.create_ha_gateway(to_ha_request(cfg))
    return client.get_gateway(cfg.gw_name)


class TestDriftFree:
    """A freshly launched gateway projects back onto its own configuration."""

    @pytest.mark.parametrize("family,overrides", [
        ("aws", {}),
        ("aws", {"ha_subnet": "10.0.2.0/24", "ha_gw_size": "t3.small"}),
        ("aws", {"insane_mode": True, "insane_mode_az": "us-east-1a"}),
        ("aws", {"single_ip_snat": True, "enable_encrypt_volume": True, "tags": {"env": "prod"}}),
        ("azure", {"zone": "az-2", "allocate_new_eip": False, "eip": "20.1.2.3",
                   "azure_eip_name_resource_group": "pip-1:rg-1"}),
        ("azure", {}),
        ("gcp", {"ha_subnet": "10.0.2.0/24", "ha_zone": "us-west1-b", "ha_gw_size": "n1-standard-1"}),
        ("oci", {"ha_subnet": "10.0.2.0/24", "ha_gw_size": "VM.Standard2.2",
                 "ha_availability_domain": "AD-2", "ha_fault_domain": "FD-2"}),
    ])
    def test_launch_projects_to_config(self, make_config, family, overrides):
        cfg = make_config(family, **overrides)

        assert project(launch(cfg), cfg) == cfg


class TestPlacement:
    """Tests for zone and VPC identifier projection."""

    def test_availability_set_is_no_zone(self, make_config):
        remote = launch(make_config("azure"))

        assert remote.gateway_zone == "AvailabilitySet"
        assert project(remote, make_config("azure"), imported=True).zone == ""

    def test_undeclared_azure_zone_reported_only_on_import(self, make_config):
        remote = launch(make_config("azure", zone="az-3"))
        undeclared = make_config("azure")

        assert project(remote, undeclared).zone == ""
        assert project(remote, undeclared, imported=True).zone == "az-3"

    def test_aws_vpc_id_suffix_dropped(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1, vpc_id="vpc-0abc~~spoke-vpc")

        assert project(remote, make_config("aws")).vpc_id == "vpc-0abc"

    def test_azure_vpc_id_kept_whole(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=8, vpc_id="vnet-1:rg-1")

        assert project(remote, make_config("azure")).vpc_id == "vnet-1:rg-1"

    def test_gcp_region_is_gateway_zone(self, make_config):
        remote = RemoteGatewayState(
            gw_name="spoke-1", cloud_type=4, vpc_region="us-west1", gateway_zone="us-west1-c"
        )

        assert project(remote, make_config("gcp")).vpc_reg == "us-west1-c"

    def test_azure_private_mode_zone(self, make_config):
        cfg = make_config("azure", private_mode_subnet_zone="az-1", private_mode_lb_vpc_id="vnet-lb:rg-1")
        remote = launch(cfg, private_mode=True)

        assert remote.gateway_zone == "1"
        assert project(remote, cfg) == cfg

    def test_azure_private_mode_zone_of_sibling(self, make_config):
        cfg = make_config(
            "azure",
            private_mode_subnet_zone="az-1",
            private_mode_lb_vpc_id="vnet-lb:rg-1",
            ha_subnet="10.0.2.0/24",
            ha_gw_size="Standard_B2ms",
            ha_private_mode_subnet_zone="az-2",
        )

        projected = project(launch(cfg, private_mode=True), cfg)

        assert projected.private_mode_subnet_zone == "az-1"
        assert projected.ha_or_empty().private_mode_subnet_zone == "az-2"

    def test_private_mode_zone_needs_load_balancer_vpc(self, make_config):
        """Without a private mode load balancer VPC no private mode zone is reported."""
        cfg = make_config("azure", private_mode_subnet_zone="az-1")

        assert project(launch(cfg, private_mode=True), cfg).private_mode_subnet_zone == ""

    def test_aws_private_mode_zone(self, make_config):
        cfg = make_config("aws", private_mode_subnet_zone="us-east-1b", private_mode_lb_vpc_id="vpc-lb")

        assert project(launch(cfg, private_mode=True), cfg) == cfg


class TestOrderInsensitive:
    """Declared order survives when the controller reports the same elements."""

    def test_route_string_reordered(self, make_config):
        cfg = make_config("aws", customized_spoke_vpc_routes="10.1.0.0/16,10.2.0.0/16")
        remote = RemoteGatewayState(
            gw_name="spoke-1", cloud_type=1, customized_spoke_vpc_routes=["10.2.0.0/16", "10.1.0.0/16"]
        )

        assert project(remote, cfg).customized_spoke_vpc_routes == "10.1.0.0/16,10.2.0.0/16"

    def test_route_string_changed(self, make_config):
        cfg = make_config("aws", customized_spoke_vpc_routes="10.1.0.0/16")
        remote = RemoteGatewayState(
            gw_name="spoke-1", cloud_type=1, customized_spoke_vpc_routes=["10.3.0.0/16", "10.1.0.0/16"]
        )

        assert project(remote, cfg).customized_spoke_vpc_routes == "10.3.0.0/16,10.1.0.0/16"

    def test_set_field_reordered(self, make_config):
        cfg = make_config(
            "aws", enable_monitor_gateway_subnets=True, monitor_exclude_list=["i-1", "i-2"]
        )
        remote = RemoteGatewayState(
            gw_name="spoke-1",
            cloud_type=1,
            monitor_subnets_action="enable",
            monitor_exclude_gw_list=["i-2", "i-1"],
        )

        assert project(remote, cfg).monitor_exclude_list == ["i-1", "i-2"]


class TestBgpTimers:
    """Timers only mean something on BGP gateways."""

    def test_non_bgp_timers_defaulted(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1, bgp_polling_time=20, bgp_hold_time=90)

        projected = project(remote, make_config("aws", bgp_polling_time=20))

        assert projected.bgp_polling_time == 50
        assert projected.bgp_hold_time == 180

    def test_bgp_timers_reported(self, make_config):
        remote = RemoteGatewayState(
            gw_name="spoke-1", cloud_type=1, enable_bgp=True, bgp_polling_time=20, bgp_bfd_polling_time=3
        )

        projected = project(remote, make_config("aws", enable_bgp=True))

        assert projected.bgp_polling_time == 20
        assert projected.bgp_neighbor_status_polling_time == 3

    def test_prepend_path_split(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1, enable_bgp=True, prepend_as_path="65001 65001")

        assert project(remote, make_config("aws", enable_bgp=True)).prepend_as_path == ["65001", "65001"]


class TestTunnelDetectionTime:

    def test_undeclared_follows_controller(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1, tunnel_detection_time=30)

        assert project(remote, make_config("aws")).tunnel_detection_time is None

    def test_declared_reported(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1, tunnel_detection_time=30)

        assert project(remote, make_config("aws", tunnel_detection_time=45)).tunnel_detection_time == 30


class TestHaProjection:
    """Tests for projecting the HA sibling."""

    def test_sibling_without_size_clears_ha(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1)
        remote.ha_gw = RemoteGatewayState(gw_name="spoke-1-hagw", cloud_type=1, vpc_net="10.0.2.0/24")
        cfg = make_config("aws", ha_subnet="10.0.2.0/24", ha_gw_size="t3.small")

        assert project(remote, cfg).ha is None

    def test_no_sibling_clears_ha(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1)
        cfg = make_config("aws", ha_subnet="10.0.2.0/24", ha_gw_size="t3.small")

        assert project(remote, cfg).ha is None

    def test_unmanaged_ha_keeps_declared(self, make_config):
        remote = RemoteGatewayState(gw_name="spoke-1", cloud_type=1)
        cfg = make_config("aws", manage_ha_gateway=False)

        assert project(remote, cfg).ha == cfg.ha

    def test_sibling_eip_only_when_declared_or_imported(self, make_config):
        cfg = make_config("aws", ha_subnet="10.0.2.0/24", ha_gw_size="t3.small")
        remote = launch(cfg)

        assert project(remote, cfg).ha.eip == ""
        assert project(remote, cfg, imported=True).ha.eip == remote.ha_gw.public_ip


class TestComputed:

    def test_computed_without_sibling(self, make_config):
        computed = project_computed(launch(make_config("aws")))

        for name in COMPUTED_FIELDS:
            assert computed[name]
            assert computed[f"ha_{name}"] == ""
        assert computed["ha_gw_name"] == ""
        assert computed["tunnel_detection_time"] is None

    def test_computed_with_sibling(self, make_config):
        remote = launch(make_config("aws", ha_subnet="10.0.2.0/24", ha_gw_size="t3.small"))

        computed = project_computed(remote)

        assert computed["ha_gw_name"] == "spoke-1-hagw"
        assert computed["ha_private_ip"] == remote.ha_gw.private_ip
        assert computed["ha_cloud_instance_id"] != computed["cloud_instance_id"]
