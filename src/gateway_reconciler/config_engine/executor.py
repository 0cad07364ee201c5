"""Executor for control-plane calls issued while reconciling one gateway.

Every mutating call is logged, written to the audit log and, on failure,
wrapped as RemoteCallError naming the operation. Route edits can be run
through the bounded retry shim.
"""
import dataclasses
import inspect
import logging
from typing import TYPE_CHECKING, Any, Optional

from ..errors import ControllerError, NotFoundError, RemoteCallError
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed_section_sync
from ..utils.retry import RETRY_WAIT_SECONDS, ROUTE_EDIT_ATTEMPTS, call_with_retry

if TYPE_CHECKING:
    from ..client.base import ControlPlaneClient

logger = logging.getLogger(__name__)


class CallExecutor:
    """Issue control-plane calls on behalf of one gateway.

    Usage:
        executor = CallExecutor(client, "spoke-1")
        executor.call("set_jumbo_frame", "spoke-1", False)
        executor.call_with_retry("edit_customized_routes", "spoke-1", cidrs, attempts=20)
    """

    def __init__(
        self,
        client: "ControlPlaneClient",
        gateway: str,
        wait_seconds: float = RETRY_WAIT_SECONDS,
        tracker: Optional[ChangeTracker] = None,
    ):
        self.client = client
        self.gateway = gateway
        self.wait_seconds = wait_seconds
        self.tracker = tracker or ChangeTracker(gateway)

    def _parameters(self, operation: str, args: tuple, kwargs: dict) -> dict[str, Any]:
        method = getattr(self.client, operation)
        try:
            bound = inspect.signature(method).bind(*args, **kwargs)
        except TypeError:
            return {"args": list(args), **kwargs}
        parameters = {}
        for name, value in bound.arguments.items():
            if hasattr(value, "to_form"):
                value = value.to_form()
            elif dataclasses.is_dataclass(value):
                value = dataclasses.asdict(value)
            parameters[name] = value
        return parameters

    def call(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """Issue one mutating call.

        Raises:
            RemoteCallError: If the controller rejects the call
        """
        parameters = self._parameters(operation, args, kwargs)
        logger.info(f"{self.gateway}: {operation}")
        logger.debug(f"{self.gateway}: {operation} {parameters}")
        try:
            result = getattr(self.client, operation)(*args, **kwargs)
        except (ControllerError, NotFoundError) as e:
            self.tracker.log_change(operation, parameters, success=False, error=str(e))
            raise RemoteCallError(f"{operation} on {self.gateway}", e) from e
        self.tracker.log_change(operation, parameters, success=True)
        return result

    def call_with_retry(
        self,
        operation: str,
        *args: Any,
        attempts: int = ROUTE_EDIT_ATTEMPTS,
        **kwargs: Any,
    ) -> Any:
        """Issue a mutating call, retrying while the gateway is still provisioning.

        Raises:
            RemoteCallError: On a permanent failure, or when the attempts run out
        """
        parameters = self._parameters(operation, args, kwargs)
        logger.info(f"{self.gateway}: {operation} (up to {attempts} attempts)")
        description = f"{operation} on {self.gateway}"
        try:
            with timed_section_sync(operation, gateway=self.gateway, attempts=attempts):
                result = call_with_retry(
                    getattr(self.client, operation),
                    *args,
                    operation=description,
                    max_attempts=attempts,
                    wait_seconds=self.wait_seconds,
                    **kwargs,
                )
        except RemoteCallError as e:
            self.tracker.log_change(operation, parameters, success=False, error=str(e.cause))
            raise
        except (ControllerError, NotFoundError) as e:
            self.tracker.log_change(operation, parameters, success=False, error=str(e))
            raise RemoteCallError(description, e) from e
        self.tracker.log_change(operation, parameters, success=True)
        return result

    def read(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """Issue a read. NotFoundError propagates so callers can treat it as absence.

        Raises:
            NotFoundError: If the object does not exist
            RemoteCallError: For any other failure
        """
        try:
            return getattr(self.client, operation)(*args, **kwargs)
        except ControllerError as e:
            raise RemoteCallError(f"{operation} on {self.gateway}", e) from e
