"""Shared fixtures for the gateway reconciler tests."""
import pytest

from gateway_reconciler.client import InMemoryController
from gateway_reconciler.config import ControllerSettings
from gateway_reconciler.config_engine import GatewayConfig, GatewayLifecycleController
from gateway_reconciler.config_store import GatewayStore

# Minimal declared configuration per provider family
BASE_FIELDS = {
    "aws": {
        "cloud_type": 1,
        "account_name": "prod-aws",
        "gw_name": "spoke-1",
        "vpc_id": "vpc-0abc",
        "vpc_reg": "us-east-1",
        "gw_size": "t3.small",
        "subnet": "10.0.1.0/24",
    },
    "azure": {
        "cloud_type": 8,
        "account_name": "prod-azure",
        "gw_name": "spoke-1",
        "vpc_id": "vnet-1:rg-1",
        "vpc_reg": "East US",
        "gw_size": "Standard_B2ms",
        "subnet": "10.0.1.0/24",
    },
    "gcp": {
        "cloud_type": 4,
        "account_name": "prod-gcp",
        "gw_name": "spoke-1",
        "vpc_id": "gcp-vpc-1",
        "vpc_reg": "us-west1-a",
        "gw_size": "n1-standard-1",
        "subnet": "10.0.1.0/24",
    },
    "oci": {
        "cloud_type": 16,
        "account_name": "prod-oci",
        "gw_name": "spoke-1",
        "vpc_id": "vcn-1",
        "vpc_reg": "us-ashburn-1",
        "gw_size": "VM.Standard2.2",
        "subnet": "10.0.1.0/24",
        "availability_domain": "AD-1",
        "fault_domain": "FD-1",
    },
}


@pytest.fixture
def client():
    """In-memory controller recording every call."""
    return InMemoryController()


@pytest.fixture
def settings():
    """Controller settings with no sleep between retries."""
    return ControllerSettings(backend="memory", retry_wait_seconds=0)


@pytest.fixture
def controller(client, settings):
    return GatewayLifecycleController(client, settings)


@pytest.fixture
def make_store():
    """Factory for a store declaring the base fields of a family plus overrides."""
    def _make(family: str = "aws", **overrides) -> GatewayStore:
        return GatewayStore({**BASE_FIELDS[family], **overrides})

    return _make


@pytest.fixture
def make_config():
    """Factory for a GatewayConfig of a family plus overrides (``ha_`` fields allowed)."""
    def _make(family: str = "aws", **overrides) -> GatewayConfig:
        return GatewayConfig.from_fields({**BASE_FIELDS[family], **overrides})

    return _make
