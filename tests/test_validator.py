"""Tests for cross-field validation."""
import pytest

from gateway_reconciler.config_engine import ConfigValidator, GatewayConfig
from gateway_reconciler.config_engine.schema import EDGE_RELATED, CloudType
from gateway_reconciler.errors import ValidationError


def first_error(cfg, private_mode=False):
    with pytest.raises(ValidationError) as exc:
        ConfigValidator(private_mode).check(cfg)
    return exc.value


class TestBaseConfigs:
    """The minimal configuration of every family is valid."""

    @pytest.mark.parametrize("family", ["aws", "azure", "gcp", "oci"])
    def test_minimal_config_valid(self, make_config, family):
        result = ConfigValidator().validate(make_config(family))
        assert result.valid, result.messages

    def test_validate_collects_every_error(self, make_config):
        """validate() reports every violated rule in rule order."""
        cfg = make_config("gcp", availability_domain="AD-1", enable_encrypt_volume=True)

        result = ConfigValidator().validate(cfg)

        fields = [e.field for e in result.errors]
        assert fields == ["enable_encrypt_volume", "availability_domain"]


class TestFamilyRules:
    """Fields legal for one provider family only."""

    def test_gcp_availability_domain_rejected(self, make_config):
        """availability_domain is OCI only."""
        error = first_error(make_config("gcp", availability_domain="AD-1"))
        assert error.field == "availability_domain"

    def test_oci_requires_availability_domain(self, make_config):
        error = first_error(make_config("oci", availability_domain=""))
        assert error.field == "availability_domain"

    def test_zone_only_on_azure(self, make_config):
        error = first_error(make_config("aws", zone="az-1"))
        assert error.field == "zone"

    def test_azure_zone_format(self, make_config):
        error = first_error(make_config("azure", zone="2"))
        assert error.field == "zone"
        assert "az-n" in str(error)

    def test_aws_only_toggles(self, make_config):
        error = first_error(make_config("azure", rx_queue_size="4K"))
        assert error.field == "rx_queue_size"

    def test_bgp_only_on_aws_and_azure(self, make_config):
        error = first_error(make_config("gcp", enable_bgp=True))
        assert error.field == "enable_bgp"

    def test_global_vpc_only_on_gcp(self, make_config):
        error = first_error(make_config("aws", enable_global_vpc=True))
        assert error.field == "enable_global_vpc"

    def test_tags_on_aws_and_azure(self, make_config):
        assert ConfigValidator().validate(make_config("azure", tags={"env": "prod"})).valid
        error = first_error(make_config("oci", tags={"env": "prod"}))
        assert error.field == "tags"

    def test_monitoring_excludes_aws_china(self, make_config):
        cfg = make_config("aws", cloud_type=int(CloudType.AWS_CHINA), enable_monitor_gateway_subnets=True)
        error = first_error(cfg)
        assert error.field == "enable_monitor_gateway_subnets"

    def test_edge_family_is_not_a_spoke(self, make_config):
        edge = sorted(EDGE_RELATED, key=int)[0]
        error = first_error(make_config("aws", cloud_type=int(edge)))
        assert error.field == "cloud_type"

    def test_unknown_cloud_type(self, make_config):
        """A value outside the enum fails while building the config."""
        with pytest.raises(ValidationError) as exc:
            make_config("aws", cloud_type=3)
        assert exc.value.field == "cloud_type"


class TestHaRules:
    """HA sibling placement and sizing rules."""

    def test_ha_requires_size(self, make_config):
        error = first_error(make_config("aws", ha_subnet="10.0.2.0/24"))
        assert error.field == "ha_gw_size"

    def test_size_without_ha(self, make_config):
        error = first_error(make_config("aws", ha_gw_size="t3.small"))
        assert error.field == "ha_gw_size"

    def test_gcp_ha_needs_zone(self, make_config):
        error = first_error(make_config("gcp", ha_subnet="10.0.2.0/24", ha_gw_size="n1-standard-1"))
        assert error.field == "ha_zone"

    def test_ha_zone_not_on_aws(self, make_config):
        error = first_error(make_config(
            "aws", ha_subnet="10.0.2.0/24", ha_zone="az-1", ha_gw_size="t3.small"
        ))
        assert error.field == "ha_zone"

    def test_oci_ha_needs_domains(self, make_config):
        error = first_error(make_config("oci", ha_subnet="10.0.2.0/24", ha_gw_size="VM.Standard2.2"))
        assert error.field == "ha_availability_domain"

    def test_unmanaged_ha_must_be_empty(self, make_config):
        cfg = make_config(
            "aws", manage_ha_gateway=False, ha_subnet="10.0.2.0/24", ha_gw_size="t3.small"
        )
        error = first_error(cfg)
        assert "manage_ha_gateway" in str(error)

    def test_active_standby_needs_ha_and_bgp(self, make_config):
        error = first_error(make_config("aws", enable_bgp=True, enable_active_standby=True))
        assert error.field == "enable_active_standby"


class TestInsaneMode:
    """Insane mode placement."""

    def test_aws_needs_az(self, make_config):
        error = first_error(make_config("aws", insane_mode=True))
        assert error.field == "insane_mode_az"

    def test_aws_ha_needs_az(self, make_config):
        cfg = make_config(
            "aws",
            insane_mode=True,
            insane_mode_az="us-east-1a",
            ha_subnet="10.0.2.0/24",
            ha_gw_size="t3.small",
        )
        error = first_error(cfg)
        assert error.field == "ha_insane_mode_az"

    def test_insertion_gateway_exclusive(self, make_config):
        cfg = make_config(
            "aws",
            insane_mode=True,
            insane_mode_az="us-east-1a",
            insertion_gateway=True,
            insertion_gateway_az="us-east-1a",
        )
        error = first_error(cfg)
        assert error.field == "insertion_gateway"


class TestAddressing:
    """EIP reuse, private networking and IPv6."""

    def test_eip_required_when_not_allocating(self, make_config):
        error = first_error(make_config("aws", allocate_new_eip=False))
        assert error.field == "eip"

    def test_azure_eip_needs_resource_group(self, make_config):
        error = first_error(make_config("azure", allocate_new_eip=False, eip="20.1.2.3"))
        assert error.field == "azure_eip_name_resource_group"

    def test_private_mode_fields_need_private_mode(self, make_config):
        cfg = make_config("aws", private_mode_subnet_zone="us-east-1a")
        assert first_error(cfg).field == "private_mode_subnet_zone"
        assert ConfigValidator(private_mode=True).validate(cfg).valid

    def test_private_mode_requires_zone_on_aws(self, make_config):
        error = first_error(make_config("aws"), private_mode=True)
        assert error.field == "private_mode_subnet_zone"

    def test_azure_private_mode_zones_optional(self, make_config):
        cfg = make_config(
            "azure",
            private_mode_subnet_zone="az-1",
            private_mode_lb_vpc_id="vnet-lb:rg-1",
            ha_subnet="10.0.2.0/24",
            ha_gw_size="Standard_B2ms",
            ha_private_mode_subnet_zone="az-2",
        )
        assert ConfigValidator(private_mode=True).validate(cfg).valid
        assert ConfigValidator(private_mode=True).validate(make_config("azure")).valid

    def test_private_mode_zone_rejected_outside_aws_and_azure(self, make_config):
        error = first_error(make_config("gcp", private_mode_subnet_zone="us-west1-a"), private_mode=True)
        assert error.field == "private_mode_subnet_zone"

    def test_private_oob_fields(self, make_config):
        error = first_error(make_config("aws", enable_private_oob=True))
        assert error.field == "oob_availability_zone"

        cfg = make_config(
            "aws",
            enable_private_oob=True,
            oob_management_subnet="10.9.0.0/28",
            oob_availability_zone="us-east-1a",
        )
        assert ConfigValidator().validate(cfg).valid

    def test_ipv6_needs_cidr(self, make_config):
        error = first_error(make_config("aws", enable_ipv6=True))
        assert error.field == "subnet_ipv6_cidr"

    def test_gcp_assigns_ipv6(self, make_config):
        error = first_error(make_config("gcp", enable_ipv6=True, subnet_ipv6_cidr="2600::/64"))
        assert error.field == "subnet_ipv6_cidr"

    def test_delimiter_in_placement_value(self, make_config):
        error = first_error(make_config("aws", subnet="10.0.1.0/24~~x"))
        assert error.field == "subnet"


class TestBgpRules:
    """BGP dependent settings."""

    def test_approved_cidrs_need_approval(self, make_config):
        error = first_error(make_config("aws", approved_learned_cidrs=["10.10.0.0/16"]))
        assert error.field == "approved_learned_cidrs"

    def test_bgp_over_lan_needs_interfaces_on_azure(self, make_config):
        error = first_error(make_config("azure", enable_bgp=True, enable_bgp_over_lan=True))
        assert error.field == "bgp_lan_interfaces_count"

    def test_preserve_as_path_needs_bgp(self, make_config):
        error = first_error(make_config("aws", enable_preserve_as_path=True))
        assert error.field == "enable_preserve_as_path"

    def test_customer_managed_keys_need_encryption(self, make_config):
        error = first_error(make_config("aws", customer_managed_keys="arn:aws:kms:key"))
        assert error.field == "customer_managed_keys"


def test_config_from_fields_builds_ha():
    """ha_ fields are gathered into the HA descriptor."""
    cfg = GatewayConfig.from_fields({
        "cloud_type": 1,
        "account_name": "a",
        "gw_name": "spoke-1",
        "ha_subnet": "10.0.2.0/24",
        "ha_gw_size": "t3.small",
    })
    assert cfg.ha_enabled
    assert cfg.ha.subnet == "10.0.2.0/24"
    assert cfg.ha_name == "spoke-1-hagw"
