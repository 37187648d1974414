"""Bot identity and the process-wide trusted service URL registry."""
from typing import Set

import structlog
from botframework.connector.auth import MicrosoftAppCredentials

logger = structlog.get_logger("notifications.credentials")

# Service URLs the bot may authenticate against; filled lazily, never cleared.
_TRUSTED_SERVICE_URLS: Set[str] = set()

TEAMS_CHANNEL_ID = "msteams"
TEAMS_BOT_ID_PREFIX = "28:"


class BotCredentialProvider:
    """Supplies the bot app identity to the messaging transport."""

    def __init__(self, app_id: str, app_password: str):
        self.app_id = app_id
        self.app_password = app_password

    @property
    def bot_id(self) -> str:
        """Bot account id as Teams addresses it in a conversation."""
        return f"{TEAMS_BOT_ID_PREFIX}{self.app_id}"

    def trust_service_url(self, service_url: str) -> bool:
        """Trust a service URL for outgoing calls.

        Idempotent. Returns True only the first time a URL is registered.
        """
        MicrosoftAppCredentials.trust_service_url(service_url)
        if service_url in _TRUSTED_SERVICE_URLS:
            return False
        _TRUSTED_SERVICE_URLS.add(service_url)
        logger.debug("notification.service_url.trusted", service_url=service_url)
        return True
