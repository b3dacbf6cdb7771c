from __future__ import annotations

from typing import Any
from urllib.parse import quote

from mpapps.ministry_platform.client import MinistryPlatformClient

UploadFile = tuple[str, bytes, str]


class FileService:
    def __init__(self, client: MinistryPlatformClient) -> None:
        self.client = client

    def get_files_by_record(self, table: str, record_id: int, *, default_only: bool = False) -> list[dict[str, Any]]:
        params = {"$default": True if default_only else None}
        return self.client.get(f"/files/{quote(table, safe='')}/{record_id}", params=params) or []

    def upload_files(
        self,
        table: str,
        record_id: int,
        files: list[UploadFile],
        *,
        description: str | None = None,
        is_default: bool = False,
        longest_dimension: int | None = None,
        user_id: int | None = None,
    ) -> list[dict[str, Any]]:
        multipart = [(f"file-{index}", upload) for index, upload in enumerate(files)]
        params = {
            "description": description,
            "isDefaultImage": is_default,
            "longestDimension": longest_dimension,
            "$userId": user_id,
        }
        return self.client.post_files(f"/files/{quote(table, safe='')}/{record_id}", multipart, params=params) or []

    def update_file(
        self,
        file_id: int,
        *,
        upload: UploadFile | None = None,
        file_name: str | None = None,
        description: str | None = None,
        is_default: bool | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any] | None:
        """Rename or re-describe a file, replacing its content when ``upload`` is given."""

        params = {
            "$fileName": file_name,
            "$description": description,
            "$isDefaultImage": is_default,
            "$userId": user_id,
        }
        if upload is None:
            return self.client.put(f"/files/{file_id}", params=params)
        return self.client.put_files(f"/files/{file_id}", [("file", upload)], params=params)

    def delete_file(self, file_id: int, *, user_id: int | None = None) -> None:
        self.client.delete(f"/files/{file_id}", params={"$userId": user_id})

    def file_url(self, unique_file_id: str) -> str:
        return f"{self.client.base_url}/files/{unique_file_id}"
