"""Error taxonomy for gateway reconciliation.

Every failure surfaced by this package derives from GatewayError:

- ValidationError: a declared configuration violates a cross-field rule
- ImmutableFieldError: an update tries to change a create-only field
- NotFoundError: the control-plane has no such object (Read treats it as absence)
- ControllerError: a control-plane call reported failure
- TransientProvisioningError: a ControllerError raised while the target is still provisioning
- RemoteCallError: a client failure wrapped with the operation that was being attempted
"""
from enum import Enum
from typing import Optional


class TransientCondition(str, Enum):
    """Conditions under which a mutating call may succeed if retried later."""
    WHEN_IT_IS_DOWN = "when it is down"
    HAGW_IS_DOWN = "hagw is down"
    GATEWAY_IS_DOWN = "gateway is down"

    @classmethod
    def from_reason(cls, reason: str) -> Optional["TransientCondition"]:
        """Map a controller failure reason onto a transient marker, if any."""
        for condition in cls:
            if condition.value in reason:
                return condition
        return None


class GatewayError(Exception):
    """Base class for all reconciliation errors."""


class ValidationError(GatewayError):
    """A declared configuration cannot be satisfied by the control-plane."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ImmutableFieldError(GatewayError):
    """An update attempted to change a field that is fixed after creation."""

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"updating '{field}' is not allowed")


class NotFoundError(GatewayError):
    """The requested object does not exist on the control-plane."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} not found")


class ControllerError(GatewayError):
    """A control-plane API call returned a failure."""

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"{action} failed: {reason}")


class TransientProvisioningError(ControllerError):
    """A control-plane call failed because the gateway is not ready yet."""

    def __init__(self, action: str, marker: TransientCondition, reason: str = ""):
        self.marker = marker
        super().__init__(action, reason or marker.value)


class RemoteCallError(GatewayError):
    """A control-plane failure annotated with what was being done."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation}: {cause}")
