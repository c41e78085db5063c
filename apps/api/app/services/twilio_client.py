"""Process-wide Twilio REST client."""
from __future__ import annotations

import logging
from functools import lru_cache

from twilio.rest import Client

from ..core.config import settings

logger = logging.getLogger(__name__)


class ProviderNotConfiguredError(RuntimeError):
    """Raised when Twilio credentials are not present in settings."""


@lru_cache
def get_twilio_client() -> Client:
    """Build the credentialed Twilio client once and reuse it."""

    if not settings.twilio_configured:
        raise ProviderNotConfiguredError(
            "TWILIO_ACCOUNT_SID, TWILIO_API_KEY and TWILIO_API_SECRET must be set"
        )

    logger.info("Twilio client initialised for account %s", settings.twilio_account_sid)
    return Client(settings.twilio_api_key, settings.twilio_api_secret, settings.twilio_account_sid)
