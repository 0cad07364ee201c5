"""Tests for the HTTP controller client using a mock transport."""
from urllib.parse import parse_qsl

import httpx
import pytest

from gateway_reconciler.client import HttpControllerClient
from gateway_reconciler.config import ControllerSettings
from gateway_reconciler.config_engine import to_create_request
from gateway_reconciler.errors import (
    ControllerError,
    NotFoundError,
    TransientCondition,
    TransientProvisioningError,
)

GATEWAY_INFO = {
    "gw_name": "spoke-1",
    "cloud_type": 1,
    "account_name": "prod-aws",
    "vpc_id": "vpc-0abc~~spoke-vpc",
    "vpc_net": "10.0.1.0/24",
    "gw_size": "t3.small",
    "public_ip": "54.0.0.1",
    "single_az": "yes",
    "unknown_key": "ignored",
    "ha_gw": {"gw_name": "spoke-1-hagw", "cloud_type": 1, "gw_size": "t3.small", "vpc_net": "10.0.2.0/24"},
}


class FakeController:
    """Answers API actions from a table and records every posted form."""

    def __init__(self, responses=None):
        self.forms = []
        self.responses = responses or {}
        self.logins = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.read().decode()))
        self.forms.append(form)
        action = form["action"]
        if action == "login":
            self.logins += 1
            return httpx.Response(200, json={"return": True, "CID": f"cid-{self.logins}"})
        answer = self.responses.get(action, {"return": True, "results": "ok"})
        if callable(answer):
            answer = answer(form)
        return httpx.Response(200, json=answer)

    def actions(self):
        return [form["action"] for form in self.forms]


@pytest.fixture
def fake():
    return FakeController()


@pytest.fixture
def http_client(fake):
    settings = ControllerSettings(url="https://controller.example.com/", username="admin", password="pw")
    client = HttpControllerClient(settings, transport=httpx.MockTransport(fake))
    yield client
    client.close()


class TestSession:

    def test_login_once(self, http_client, fake):
        http_client.set_jumbo_frame("spoke-1", False)
        http_client.set_gro_gso("spoke-1", False)

        assert fake.actions() == ["login", "disable_jumbo_frame", "disable_gro_gso"]
        assert fake.forms[0]["username"] == "admin"
        assert fake.forms[1]["CID"] == "cid-1"

    def test_relogin_on_expired_session(self, http_client, fake):
        answers = iter([
            {"return": False, "reason": "CID is invalid or expired."},
            {"return": True, "results": "ok"},
        ])
        fake.responses["enable_vpc_dns_server"] = lambda form: next(answers)

        http_client.set_vpc_dns_server("spoke-1", True)

        assert fake.actions() == ["login", "enable_vpc_dns_server", "login", "enable_vpc_dns_server"]
        assert fake.forms[-1]["CID"] == "cid-2"

    def test_failed_login(self, fake):
        def reject(request):
            return httpx.Response(200, json={"return": False, "reason": "wrong password"})

        settings = ControllerSettings(url="https://controller.example.com", username="admin", password="bad")
        client = HttpControllerClient(settings, transport=httpx.MockTransport(reject))

        with pytest.raises(ControllerError) as exc:
            client.get_private_mode_enabled()
        assert "wrong password" in str(exc.value)


class TestForms:

    def test_booleans_sent_as_strings(self, http_client, fake):
        http_client.set_active_standby("spoke-1", True, preemptive=False)

        assert fake.forms[-1] == {
            "action": "enable_active_standby",
            "CID": "cid-1",
            "gateway_name": "spoke-1",
            "preemptive": "false",
        }

    def test_launch_form(self, http_client, fake, make_config):
        http_client.launch_spoke_gateway(to_create_request(make_config("azure", zone="az-2")))

        form = fake.forms[-1]
        assert form["action"] == "create_multicloud_primary_gateway"
        assert form["gw_type"] == "spoke"
        assert form["gw_subnet"] == "10.0.1.0/24~~az-2~~"
        assert form["cloud_type"] == "8"

    def test_route_list_joined(self, http_client, fake):
        http_client.edit_customized_routes("spoke-1", ["10.1.0.0/16", "10.2.0.0/16"])

        assert fake.forms[-1]["cidr"] == "10.1.0.0/16,10.2.0.0/16"

    def test_unset_customer_keys_omitted(self, http_client, fake):
        http_client.enable_encrypt_volume("spoke-1")

        assert "customer_managed_keys" not in fake.forms[-1]


class TestResponses:
    """Tests for translating controller replies."""

    def test_get_gateway(self, http_client, fake):
        fake.responses["get_gateway_info"] = {"return": True, "results": GATEWAY_INFO}

        state = http_client.get_gateway("spoke-1")

        assert state.vpc_id == "vpc-0abc~~spoke-vpc"
        assert state.ha_gw.gw_name == "spoke-1-hagw"
        assert state.jumbo_frame is True

    def test_not_found(self, http_client, fake):
        fake.responses["get_gateway_info"] = {"return": False, "reason": "Gateway spoke-9 does not exist"}

        with pytest.raises(NotFoundError) as exc:
            http_client.get_gateway("spoke-9")
        assert exc.value.name == "spoke-9"

    def test_transient_marker(self, http_client, fake):
        fake.responses["edit_gateway_custom_routes"] = {
            "return": False,
            "reason": "Cannot edit routes when it is down",
        }

        with pytest.raises(TransientProvisioningError) as exc:
            http_client.edit_customized_routes("spoke-1", ["10.1.0.0/16"])
        assert exc.value.marker == TransientCondition.WHEN_IT_IS_DOWN

    def test_other_failure(self, http_client, fake):
        fake.responses["edit_gw_config"] = {"return": False, "reason": "invalid size"}

        with pytest.raises(ControllerError) as exc:
            http_client.update_gateway_size("spoke-1", "huge")
        assert not isinstance(exc.value, TransientProvisioningError)
        assert exc.value.action == "edit_gw_config"

    def test_http_error(self, fake):
        settings = ControllerSettings(url="https://controller.example.com", username="admin", password="pw")
        client = HttpControllerClient(settings, transport=httpx.MockTransport(lambda r: httpx.Response(502)))

        with pytest.raises(ControllerError):
            client.get_private_mode_enabled()

    def test_private_mode(self, http_client, fake):
        fake.responses["get_private_mode_info"] = {"return": True, "results": {"private_mode": True}}

        assert http_client.get_private_mode_enabled() is True

    def test_tunnel_detection_time_scope(self, http_client, fake):
        fake.responses["get_detection_time"] = {"return": True, "results": {"detection_time": 60}}

        assert http_client.get_tunnel_detection_time() == 60
        assert fake.forms[-1]["entity"] == "Controller"
