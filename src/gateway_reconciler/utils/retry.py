"""Bounded retry for calls that race gateway provisioning.

Route and advertisement edits fail while the target gateway (or its HA
sibling) is still coming up. Those failures carry a TransientCondition
marker; only they are retried, on a fixed interval, and exhausting the
bound escalates to RemoteCallError.
"""
import logging
from typing import Any, Callable, Iterable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from ..errors import RemoteCallError, TransientCondition, TransientProvisioningError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS = frozenset(TransientCondition)

# Attempt bounds of the route-editing call sites
ROUTE_EDIT_ATTEMPTS = 20
ADVERTISED_CIDR_ATTEMPTS = 32
RETRY_WAIT_SECONDS = 10.0


def is_transient(exc: BaseException, markers: Iterable[TransientCondition] = TRANSIENT_MARKERS) -> bool:
    """True when the exception carries one of the given transient markers."""
    return isinstance(exc, TransientProvisioningError) and exc.marker in frozenset(markers)


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    operation: str,
    max_attempts: int = ROUTE_EDIT_ATTEMPTS,
    wait_seconds: float = RETRY_WAIT_SECONDS,
    markers: Iterable[TransientCondition] = TRANSIENT_MARKERS,
    **kwargs: Any,
) -> T:
    """Call ``func`` until it succeeds, fails for good, or runs out of attempts.

    Args:
        func: The control-plane call
        operation: Description used when escalating
        max_attempts: Total attempts, including the first
        wait_seconds: Fixed sleep between attempts
        markers: Transient markers that allow a retry

    Raises:
        RemoteCallError: If the bound is reached on a transient failure
    """
    allowed = frozenset(markers)
    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(wait_seconds),
        retry=retry_if_exception(lambda exc: is_transient(exc, allowed)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    try:
        return retrying(func, *args, **kwargs)
    except TransientProvisioningError as e:
        if not is_transient(e, allowed):
            raise
        logger.error(f"{operation}: gave up after {max_attempts} attempts ({e.marker.value})")
        raise RemoteCallError(operation, e) from e
