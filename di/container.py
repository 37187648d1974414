from __future__ import annotations

import structlog
from dependency_injector import containers, providers

from api.features.notifications.credentials import BotCredentialProvider
from api.features.notifications.retry import RetryPolicy
from core.settings import SETTINGS
from infra.resources import BotAdapterResource, DatabaseResource


logger = structlog.get_logger("timesheet")


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # Bot Framework
    bot_credentials = providers.Singleton(
        BotCredentialProvider,
        app_id=SETTINGS.BOT.MICROSOFT_APP_ID,
        app_password=SETTINGS.BOT.MICROSOFT_APP_PASSWORD.get_secret_value(),
    )

    bot_adapter_resource = providers.Singleton(
        BotAdapterResource,
        app_id=SETTINGS.BOT.MICROSOFT_APP_ID,
        app_password=SETTINGS.BOT.MICROSOFT_APP_PASSWORD.get_secret_value(),
    )

    bot_adapter = providers.Singleton(
        lambda resource: resource.init(),
        resource=bot_adapter_resource,
    )

    retry_policy = providers.Singleton(
        RetryPolicy.from_settings,
        settings=SETTINGS.NOTIFICATIONS,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    # Database session factory
    db_session = providers.Factory(
        lambda db: db.get_session(),
        db=infrastructure.database,
    )

    # One dispatcher per process so background sends can be drained on shutdown
    notification_dispatcher = providers.Singleton(
        "api.features.notifications.dispatcher.NotificationDispatcher",
        adapter=infrastructure.bot_adapter,
        credentials=infrastructure.bot_credentials,
        policy=infrastructure.retry_policy,
        batch_size=SETTINGS.NOTIFICATIONS.BROADCAST_BATCH_SIZE,
    )

    card_service = providers.Singleton(
        "api.features.notifications.cards.AdaptiveCardService",
        app_base_uri=SETTINGS.BOT.APP_BASE_URI,
        manifest_id=SETTINGS.BOT.MANIFEST_ID,
    )

    conversation_service = providers.Factory(
        "api.features.conversations.service.ConversationService",
    )

    notification_service = providers.Factory(
        "api.features.notifications.service.TimesheetNotificationService",
        dispatcher=notification_dispatcher,
        card_service=card_service,
        conversation_service=conversation_service,
    )

    lifecycle_handler = providers.Factory(
        "api.features.bot.handler.AppLifecycleHandler",
        conversation_service=conversation_service,
        card_service=card_service,
        database=infrastructure.database,
    )

    activity_handler = providers.Singleton(
        "api.features.bot.handler.TimesheetActivityHandler",
        lifecycle_handler=lifecycle_handler,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()

    # Controllers
    conversation_controller = providers.Factory(
        "api.features.conversations.controller.ConversationController",
        conversation_service=services.conversation_service,
    )

    notification_controller = providers.Factory(
        "api.features.notifications.controller.NotificationController",
        notification_service=services.notification_service,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.shared.db",
            "api.features.conversations.router",
            "api.features.notifications.router",
            "api.features.bot.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(ControllerContainer, services=services)
