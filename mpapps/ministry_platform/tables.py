from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import quote

from mpapps.ministry_platform.client import MinistryPlatformClient
from mpapps.ministry_platform.envelope import first_record

Record = dict[str, Any]


class TableService:
    """Record access through ``/tables/{table}``."""

    def __init__(self, client: MinistryPlatformClient) -> None:
        self.client = client

    @staticmethod
    def _path(table: str, record_id: int | None = None) -> str:
        path = f"/tables/{quote(table, safe='')}"
        if record_id is not None:
            path = f"{path}/{record_id}"
        return path

    def get_records(
        self,
        table: str,
        *,
        select: str | None = None,
        filter: str | None = None,
        order_by: str | None = None,
        group_by: str | None = None,
        having: str | None = None,
        top: int | None = None,
        skip: int | None = None,
        distinct: bool | None = None,
        user_id: int | None = None,
    ) -> list[Record]:
        params = {
            "$select": select,
            "$filter": filter,
            "$orderby": order_by,
            "$groupby": group_by,
            "$having": having,
            "$top": top,
            "$skip": skip,
            "$distinct": distinct,
            "$userId": user_id,
        }
        return self.client.get(self._path(table), params=params) or []

    def get_record(self, table: str, record_id: int, *, select: str | None = None) -> Record | None:
        result = self.client.get(self._path(table, record_id), params={"$select": select})
        return first_record(result)

    def create_records(
        self,
        table: str,
        records: Iterable[Record],
        *,
        select: str | None = None,
        user_id: int | None = None,
    ) -> list[Record]:
        params = {"$select": select, "$userId": user_id}
        return self.client.post(self._path(table), json={"records": list(records)}, params=params) or []

    def update_records(
        self,
        table: str,
        records: Iterable[Record],
        *,
        select: str | None = None,
        user_id: int | None = None,
        allow_create: bool | None = None,
    ) -> list[Record]:
        params = {"$select": select, "$userId": user_id, "$allowCreate": allow_create}
        return self.client.put(self._path(table), json={"records": list(records)}, params=params) or []

    def delete_records(
        self,
        table: str,
        ids: Iterable[int],
        *,
        select: str | None = None,
        user_id: int | None = None,
    ) -> list[Record]:
        params = {"id": list(ids), "$select": select, "$userId": user_id}
        return self.client.delete(self._path(table), params=params) or []
