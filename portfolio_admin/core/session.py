"""
Session Management Module
==========================

This module defines the session and configuration structures of the admin
console. The ``AdminSession`` holds:
- Content API settings (where the backend lives and how long to wait)
- Media host settings (cloud name and unsigned upload preset)
- Retry settings (attempts and backoff)
- The credentials (bearer token and user descriptor) sent with every request

The configuration is persisted between sessions using the config_manager utility.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from portfolio_admin.core import config
from portfolio_admin.core.content_api import ContentAPI
from portfolio_admin.core.retry import RetryPolicy
from portfolio_admin.integrations.media_host_client import MediaHostClient

# ============================================================================
# CONFIGURATION DATACLASSES
# ============================================================================

@dataclass
class ContentAPISettings:
    """
    Location of the Content API.

    Attributes:
        base_url: API root including the ``/api`` prefix
        timeout: Per-request timeout in seconds
    """
    base_url: str = config.DEFAULT_API_URL
    timeout: int = config.NETWORK_TIMEOUT_SECONDS


@dataclass
class MediaHostSettings:
    """
    Media host upload configuration.

    Attributes:
        cloud_name: Account identifier used in the upload URL
        upload_preset: Unsigned upload preset name
        api_base: Scheme and host of the upload API
    """
    cloud_name: str = ""
    upload_preset: str = ""
    api_base: str = config.DEFAULT_MEDIA_API_BASE


@dataclass
class RetrySettings:
    """Backoff parameters for rate-limited calls."""
    max_attempts: int = config.MAX_RETRIES
    base_delay_ms: int = config.RETRY_BASE_DELAY_MS
    backoff_multiplier: float = config.RETRY_BACKOFF_MULTIPLIER

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
        )


@dataclass
class SessionCredentials:
    """
    Authentication state sent with every Content API request.

    Obtaining a token (login) happens elsewhere; this object only carries it.
    A 401 response clears it.
    """
    token: str = ""
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def authorization_header(self) -> str:
        return f"Bearer {self.token}"

    def clear(self):
        """Forget the token and the user descriptor."""
        self.token = ""
        self.user = {}


# ============================================================================
# SESSION CLASS
# ============================================================================

class AdminSession:
    """
    Main session object of the admin console.

    Created once at startup, populated by ``load_config`` and handed to the
    components that need settings or credentials.

    Attributes:
        api: Content API settings
        media: Media host settings
        retry: Retry settings
        credentials: Bearer token and user descriptor
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.logger.info("Initializing new session")

        self.api = ContentAPISettings()
        self.media = MediaHostSettings()
        self.retry = RetrySettings()
        self.credentials = SessionCredentials()

        self.logger.debug(f"Session initialized - API: {self.api.base_url}")

    def on_unauthorized(self):
        """Invoked by the Content API client after a 401 cleared the credentials."""
        self.logger.warning("Session credentials rejected by the server; login required")

    def create_api(self) -> ContentAPI:
        """Build a Content API client bound to this session's credentials."""
        return ContentAPI(
            base_url=self.api.base_url,
            credentials=self.credentials,
            timeout=self.api.timeout,
            on_unauthorized=self.on_unauthorized,
        )

    def create_media_host(self) -> MediaHostClient:
        """Build a media host client from the configured cloud name and preset."""
        if not (self.media.cloud_name and self.media.upload_preset):
            self.logger.warning("Media host is not configured; image uploads will fail")
        return MediaHostClient(
            cloud_name=self.media.cloud_name,
            upload_preset=self.media.upload_preset,
            api_base=self.media.api_base,
        )
