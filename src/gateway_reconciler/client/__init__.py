"""Control-plane clients for the network controller."""
from ..config.settings import ControllerSettings
from .base import ControlPlaneClient, CONTROLLER_SCOPE
from .http import HttpControllerClient
from .memory import InMemoryController, RecordedCall

__all__ = [
    "ControlPlaneClient",
    "CONTROLLER_SCOPE",
    "HttpControllerClient",
    "InMemoryController",
    "RecordedCall",
    "create_client",
]

# Client backend registry
CLIENT_BACKENDS = {
    "http": HttpControllerClient,
    "memory": InMemoryController,
}


def create_client(settings: ControllerSettings) -> ControlPlaneClient:
    """Factory function to create the client named by ``settings.backend``."""
    backend = settings.backend.lower()
    if backend not in CLIENT_BACKENDS:
        raise ValueError(f"Unknown client backend: {backend}")

    if backend == "memory":
        return InMemoryController()
    return HttpControllerClient(settings)
