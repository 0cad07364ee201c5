"""Config Engine - Declarative spoke gateway reconciliation.

The Config Engine turns a declared gateway configuration into control-plane calls:
- Cross-field validation before anything is sent
- Placement fields packed with one positional codec
- Updates issue only the calls of the changed field groups
- The HA sibling follows the primary's ha_ fields
- The remote state is projected back for drift detection

Usage:
    from gateway_reconciler.client import InMemoryController
    from gateway_reconciler.config_engine import GatewayLifecycleController
    from gateway_reconciler.config_store import GatewayStore

    store = GatewayStore({
        "cloud_type": 1,
        "account_name": "prod-aws",
        "gw_name": "spoke-1",
        "vpc_id": "vpc-0abc",
        "vpc_reg": "us-east-1",
        "gw_size": "t3.small",
        "subnet": "10.0.1.0/24",
    })
    controller = GatewayLifecycleController(InMemoryController())
    controller.create(store)

    store.declare(ha_subnet="10.0.2.0/24", ha_gw_size="t3.small")
    print(controller.preview(store))
    controller.update(store)
"""

from .engine import GatewayLifecycleController, UpdateContext, REMOTE_DEFAULT_SETTERS
from .schema import (
    CloudType,
    GatewayConfig,
    HaConfig,
    HaTransition,
    LifecyclePhase,
    RemoteGatewayState,
    SpokeGatewayRequest,
    HaGatewayRequest,
    ValidationResult,
    UpdateCall,
    UpdatePlan,
)
from .codec import Placement, encode, decode, encode_placement, decode_placement
from .validator import ConfigValidator
from .marshaler import to_create_request, to_ha_request, to_update_plan, UPDATE_GROUPS
from .diff import changed_fields, classify_ha_transition, summarize_plan
from .ha import HaSiblingManager
from .projector import project, project_computed
from .executor import CallExecutor

__all__ = [
    # Main controller
    "GatewayLifecycleController",
    "UpdateContext",
    "REMOTE_DEFAULT_SETTERS",
    # Schema classes
    "CloudType",
    "GatewayConfig",
    "HaConfig",
    "HaTransition",
    "LifecyclePhase",
    "RemoteGatewayState",
    "SpokeGatewayRequest",
    "HaGatewayRequest",
    "ValidationResult",
    "UpdateCall",
    "UpdatePlan",
    # Codec
    "Placement",
    "encode",
    "decode",
    "encode_placement",
    "decode_placement",
    # Components (for advanced use)
    "ConfigValidator",
    "to_create_request",
    "to_ha_request",
    "to_update_plan",
    "UPDATE_GROUPS",
    "changed_fields",
    "classify_ha_transition",
    "summarize_plan",
    "HaSiblingManager",
    "project",
    "project_computed",
    "CallExecutor",
]
