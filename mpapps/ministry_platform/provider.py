from __future__ import annotations

from functools import lru_cache

import httpx

from mpapps.core.config import Settings, settings
from mpapps.ministry_platform.client import MinistryPlatformClient
from mpapps.ministry_platform.domain import DomainService
from mpapps.ministry_platform.files import FileService
from mpapps.ministry_platform.procedures import ProcedureService
from mpapps.ministry_platform.tables import TableService


class MinistryPlatformProvider:
    """Bundles the MinistryPlatform services over one shared client."""

    def __init__(self, client: MinistryPlatformClient) -> None:
        self.client = client
        self.tables = TableService(client)
        self.procedures = ProcedureService(client)
        self.files = FileService(client)
        self.domain = DomainService(client)

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> "MinistryPlatformProvider":
        client = MinistryPlatformClient(
            config.MINISTRY_PLATFORM_BASE_URL,
            config.MINISTRY_PLATFORM_CLIENT_ID,
            config.MINISTRY_PLATFORM_CLIENT_SECRET,
            scope=config.MINISTRY_PLATFORM_SCOPE,
            oauth_url=config.oauth_base_url,
            timeout=config.MINISTRY_PLATFORM_TIMEOUT_SECONDS,
            refresh_buffer_seconds=config.MINISTRY_PLATFORM_TOKEN_BUFFER_SECONDS,
            transport=transport,
        )
        return cls(client)

    def for_user(self, access_token: str) -> "MinistryPlatformProvider":
        return MinistryPlatformProvider(self.client.with_access_token(access_token))


@lru_cache
def get_provider() -> MinistryPlatformProvider:
    return MinistryPlatformProvider.from_settings()
