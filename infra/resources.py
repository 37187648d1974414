"""Infrastructure resources: database and Bot Framework adapter.

This module is part of the infra layer and must not import from application features.
"""
import structlog
from botbuilder.core import BotFrameworkAdapter, BotFrameworkAdapterSettings, TurnContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

logger = structlog.get_logger("infra")


class DatabaseResource:
    """Database resource for dependency injection."""

    def __init__(self, database_url: str, **engine_kwargs):
        self.database_url = database_url
        self.engine_kwargs = engine_kwargs
        self.engine = None
        self.session_factory = None

    async def init(self):
        """Initialize database connection."""
        if self.engine is not None:
            return self
        options = {"echo": False, "pool_pre_ping": True, "pool_recycle": 3600}
        options.update(self.engine_kwargs)
        self.engine = create_async_engine(self.database_url, **options)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        return self

    def get_session(self) -> AsyncSession:
        """Get database session (synchronous accessor)."""
        if self.session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self.session_factory()

    async def shutdown(self):
        """Shutdown database connection."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


async def _on_turn_error(turn_context: TurnContext, error: Exception):
    logger.error(
        "bot.turn_error",
        activity_type=turn_context.activity.type,
        conversation_id=getattr(turn_context.activity.conversation, "id", None),
        error=str(error),
        exc_info=error,
    )


class BotAdapterResource:
    """Bot Framework adapter bound to the bot's app credentials."""

    def __init__(self, app_id: str, app_password: str):
        self.app_id = app_id
        self.app_password = app_password
        self.adapter = None

    def init(self) -> BotFrameworkAdapter:
        if self.adapter is None:
            settings = BotFrameworkAdapterSettings(
                app_id=self.app_id, app_password=self.app_password
            )
            self.adapter = BotFrameworkAdapter(settings)
            self.adapter.on_turn_error = _on_turn_error
            logger.info("bot.adapter.initialized", app_id=self.app_id)
        return self.adapter
