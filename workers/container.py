"""Worker dependency injection container."""
import structlog
from dependency_injector import containers, providers

from di.container import InfrastructureContainer, ServiceContainer

logger = structlog.get_logger("workers")


class WorkerContainer(containers.DeclarativeContainer):
    """Workers reuse the API's infrastructure and services, without HTTP wiring."""

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
