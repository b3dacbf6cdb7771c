from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from mpapps.ministry_platform.client import MinistryPlatformClient
from mpapps.ministry_platform.envelope import deep_parse_json, unwrap_procedure_result


def build_procedure_params(params: Mapping[str, Any] | None, *, keep_none: bool = False) -> dict[str, Any]:
    """Normalize procedure arguments to MinistryPlatform's ``@Name`` form.

    Dict and list values are sent as JSON strings since procedures receive them
    as ``NVARCHAR(MAX)`` parameters.
    """

    built: dict[str, Any] = {}
    for key, value in (params or {}).items():
        if value is None and not keep_none:
            continue
        name = key if key.startswith("@") else f"@{key}"
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        built[name] = value
    return built


class ProcedureService:
    def __init__(self, client: MinistryPlatformClient) -> None:
        self.client = client

    def list_procedures(self, search: str | None = None) -> list[dict[str, Any]]:
        return self.client.get("/procs", params={"$search": search}) or []

    def execute(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        return self.client.get(f"/procs/{quote(name, safe='')}", params=build_procedure_params(params))

    def execute_with_body(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        return self.client.post(f"/procs/{quote(name, safe='')}", json=build_procedure_params(params))

    def execute_json(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        *,
        default: Any = None,
        use_body: bool = True,
    ) -> Any:
        """Execute a ``FOR JSON`` procedure and return its decoded document."""

        raw = self.execute_with_body(name, params) if use_body else self.execute(name, params)
        return deep_parse_json(unwrap_procedure_result(raw, default=default))
