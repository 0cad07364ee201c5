"""HA sibling manager.

The HA sibling of a spoke gateway has no configuration of its own: it
exists while the primary declares an HA subnet (or, on GCP, an HA zone)
and is placed and sized from the primary's ``ha_`` fields.

| transition | calls                                        |
|------------|----------------------------------------------|
| NONE       | none                                         |
| CREATE     | create_ha_gateway                            |
| DELETE     | delete_gateway (sibling)                     |
| RECREATE   | delete_gateway (sibling), create_ha_gateway  |
| RESIZE     | get_gateway (sibling), update_gateway_size   |
"""
import logging

from ..errors import NotFoundError, ValidationError
from .executor import CallExecutor
from .marshaler import to_ha_request
from .schema import AWS_RELATED, GatewayConfig, HaTransition

logger = logging.getLogger(__name__)


class HaSiblingManager:
    """Create, delete, resize or rebuild the HA sibling of one gateway."""

    def __init__(self, executor: CallExecutor):
        self.executor = executor

    def validate(self, transition: HaTransition, cfg: GatewayConfig) -> None:
        """Check the sibling size before anything destructive is issued.

        Raises:
            ValidationError: If the size contradicts the transition
        """
        size = cfg.ha_or_empty().gw_size
        if transition == HaTransition.DELETE and size:
            raise ValidationError("ha_gw_size", "must be empty if the HA gateway is deleted")
        if transition in (HaTransition.CREATE, HaTransition.RECREATE, HaTransition.RESIZE) and not size:
            raise ValidationError(
                "ha_gw_size", "a non empty size is mandatory if ha_subnet or ha_zone is set"
            )

    def apply(self, transition: HaTransition, cfg: GatewayConfig, rx_queue_unchanged: bool = False) -> None:
        """Carry out one transition.

        Args:
            transition: What the sibling goes through
            cfg: The declared configuration
            rx_queue_unchanged: Whether the primary's rx queue size is
                already applied, in which case a new sibling gets it too
        """
        if transition == HaTransition.NONE:
            return
        logger.info(f"HA gateway of {cfg.gw_name}: {transition.value}")

        if transition == HaTransition.CREATE:
            self.create(cfg)
            if rx_queue_unchanged:
                self.copy_rx_queue_size(cfg)
        elif transition == HaTransition.DELETE:
            self.delete(cfg)
        elif transition == HaTransition.RECREATE:
            self.delete(cfg)
            self.create(cfg)
        elif transition == HaTransition.RESIZE:
            self.resize(cfg)

    def create(self, cfg: GatewayConfig) -> str:
        return self.executor.call("create_ha_gateway", to_ha_request(cfg))

    def delete(self, cfg: GatewayConfig, missing_ok: bool = False) -> None:
        """Delete the sibling. With ``missing_ok`` a sibling that does not exist is skipped."""
        if missing_ok:
            try:
                self.executor.read("get_gateway", cfg.ha_name)
            except NotFoundError:
                logger.warning(f"HA gateway {cfg.ha_name} not found, skipping delete")
                return
        self.executor.call("delete_gateway", int(cfg.cloud_type), cfg.ha_name)

    def resize(self, cfg: GatewayConfig) -> None:
        """Resize the sibling in place. A sibling that no longer exists is skipped."""
        try:
            self.executor.read("get_gateway", cfg.ha_name)
        except NotFoundError:
            logger.warning(f"HA gateway {cfg.ha_name} not found, skipping resize")
            return
        self.executor.call("update_gateway_size", cfg.ha_name, cfg.ha_or_empty().gw_size)

    def copy_rx_queue_size(self, cfg: GatewayConfig) -> None:
        if cfg.cloud_type.belongs_to(AWS_RELATED) and cfg.rx_queue_size:
            self.executor.call("set_rx_queue_size", cfg.ha_name, cfg.rx_queue_size)
