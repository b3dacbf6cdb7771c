from __future__ import annotations

from typing import Any

from mpapps.ministry_platform.client import MinistryPlatformClient


class DomainService:
    def __init__(self, client: MinistryPlatformClient) -> None:
        self.client = client

    def get_domain_info(self) -> dict[str, Any]:
        return self.client.get("/domain") or {}

    def get_global_filters(self, *, ignore_permissions: bool | None = None, user_id: int | None = None) -> list[dict[str, Any]]:
        params = {"$ignorePermissions": ignore_permissions, "$userId": user_id}
        return self.client.get("/domain/filters", params=params) or []
