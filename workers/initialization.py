"""Worker initialization module - ensures proper DI container setup."""
import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from workers.container import WorkerContainer

logger = structlog.get_logger("workers.initialization")


class WorkerInitializer:
    """Manages the worker container lifecycle."""

    _container: WorkerContainer = None

    @classmethod
    def get_container(cls) -> WorkerContainer:
        """Get the worker container singleton."""
        if cls._container is None:
            cls._container = WorkerContainer()
        return cls._container

    @classmethod
    @asynccontextmanager
    async def worker_context(cls) -> AsyncGenerator[WorkerContainer, None]:
        """
        Async context manager for worker container lifecycle.

        Each task runs in its own event loop, so the engine is created and
        disposed per context, the dispatcher is drained before leaving and
        the bot adapter is rebuilt for the next loop.

        Yields:
            Initialized worker container
        """
        container = cls.get_container()
        db_resource = container.infrastructure.database()

        try:
            await db_resource.init()
            container.infrastructure.bot_adapter()
            logger.info("worker.initialization.complete")
            yield container

        except Exception as e:
            logger.error("worker.context.failed", error=str(e))
            raise
        finally:
            try:
                await container.services.notification_dispatcher().drain()
                await db_resource.shutdown()
                logger.info("worker.cleanup.complete")
            except Exception as e:
                logger.warning("worker.cleanup.error", error=str(e))
            cls.reset_loop_bound_providers(container)

    @staticmethod
    def reset_loop_bound_providers(container: WorkerContainer) -> None:
        """Drop singletons holding connector sessions tied to the finished event loop."""
        container.services.notification_dispatcher.reset()
        container.infrastructure.bot_adapter.reset()
        container.infrastructure.bot_adapter_resource.reset()
