"""Tests for the bounded retry shim."""
import pytest

from gateway_reconciler.errors import (
    ControllerError,
    RemoteCallError,
    TransientCondition,
    TransientProvisioningError,
)
from gateway_reconciler.utils.retry import call_with_retry, is_transient


class Flaky:
    """Fails with the given errors in turn, then returns 'done'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


def transient(marker=TransientCondition.GATEWAY_IS_DOWN):
    return TransientProvisioningError("edit_gateway_custom_routes", marker)


class TestCallWithRetry:

    def test_succeeds_after_transient_failures(self):
        func = Flaky(transient(), transient(TransientCondition.HAGW_IS_DOWN))

        result = call_with_retry(func, "spoke-1", operation="edit routes", max_attempts=5, wait_seconds=0)

        assert result == "done"
        assert func.calls == 3

    def test_exhaustion_escalates(self):
        func = Flaky(*[transient() for _ in range(5)])

        with pytest.raises(RemoteCallError) as exc:
            call_with_retry(func, operation="edit routes", max_attempts=3, wait_seconds=0)

        assert func.calls == 3
        assert exc.value.operation == "edit routes"
        assert isinstance(exc.value.cause, TransientProvisioningError)

    def test_permanent_failure_not_retried(self):
        func = Flaky(ControllerError("edit_gateway_custom_routes", "invalid CIDR"))

        with pytest.raises(ControllerError):
            call_with_retry(func, operation="edit routes", max_attempts=5, wait_seconds=0)

        assert func.calls == 1

    def test_marker_outside_allowed_set(self):
        func = Flaky(transient(TransientCondition.HAGW_IS_DOWN))

        with pytest.raises(TransientProvisioningError):
            call_with_retry(
                func,
                operation="edit routes",
                max_attempts=5,
                wait_seconds=0,
                markers=[TransientCondition.GATEWAY_IS_DOWN],
            )

        assert func.calls == 1

    def test_keyword_arguments_passed(self):
        seen = {}

        def edit(name, cidrs=None):
            seen.update(name=name, cidrs=cidrs)
            return "ok"

        assert call_with_retry(edit, "spoke-1", cidrs=["10.1.0.0/16"], operation="edit", wait_seconds=0) == "ok"
        assert seen == {"name": "spoke-1", "cidrs": ["10.1.0.0/16"]}


def test_is_transient():
    assert is_transient(transient())
    assert not is_transient(ControllerError("x", "gateway is down"))
    assert not is_transient(ValueError("gateway is down"))
