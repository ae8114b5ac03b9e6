"""HTTP client for the JumpCloud v1/v2 APIs and typed wrappers for the endpoints the provider uses.

Each wrapper takes the client as its first argument and returns parsed entities, so callers never handle raw
payload dicts.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import requests

import config
import errors
from entities.jumpcloud import (
    ApplicationsPage,
    GraphConnection,
    GraphManagementRequest,
    SystemUsersPage,
    UserGroup,
    UserGroupMemberRequest,
    UserGroupRequest,
)

logger = config.get_logger(service="jumpcloud")

JSON = "application/json"


class JumpCloudClient:
    """Thin wrapper around a requests session.

    Holds only read-only settings (base URL, API key, org scope), so a single instance is shared by all workers
    of a call.

    Usage:
        client = JumpCloudClient(cfg)
        groups = list_user_groups(client, name_filter("Engineering"), limit=100, skip=0)
    """

    def __init__(self, cfg: config.Config, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()
        self.headers = {
            "x-api-key": cfg.api_key,
            "Accept": JSON,
            "Content-Type": JSON,
        }
        if cfg.org_id:
            self.headers["x-org-id"] = cfg.org_id

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Optional[dict] = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, json: Optional[dict] = None) -> Any:
        return self._request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def _request(self, method: str, path: str, params: Optional[dict] = None, json: Optional[dict] = None) -> Any:
        url = f"{self.cfg.api_url}{path}"
        logger.debug(f"{method} {path}", extra={"params": params})
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=self.headers,
                timeout=self.cfg.request_timeout_seconds,
            )
        except requests.RequestException as e:
            raise errors.TransportError(f"{method} {path}: {e}") from e

        if resp.status_code >= 400:
            raise errors.APIError(resp.status_code, resp.text, f"{method} {path}")
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise errors.TransportError(f"{method} {path}: invalid JSON in response: {e}") from e


def name_filter(name: str) -> str:
    return f"name:eq:{name}"


def in_filter(field: str, values: Sequence[str]) -> str:
    return f"{field}:$in:" + "|".join(values)


def eq_filter(field: str, value: str) -> str:
    return f"{field}:$eq:{value}"


#-----------------v1: users and applications-----------------#

def list_system_users(
    client: JumpCloudClient,
    filter: str,  # noqa: A002
    limit: int,
    skip: int,
    fields: Optional[str] = None,
    sort: Optional[str] = None,
) -> SystemUsersPage:
    params: dict[str, Any] = {"filter": filter, "limit": limit, "skip": skip}
    if fields:
        params["fields"] = fields
    if sort:
        params["sort"] = sort
    return SystemUsersPage.model_validate(client.get("/systemusers", params=params) or {})


def list_applications(client: JumpCloudClient, limit: int, skip: int) -> ApplicationsPage:
    params = {"fields": "_id displayName displayLabel", "limit": limit, "skip": skip}
    return ApplicationsPage.model_validate(client.get("/applications", params=params) or {})


#-----------------v2: user groups-----------------#

def list_user_groups(client: JumpCloudClient, filter: str, limit: int, skip: int) -> list[UserGroup]:  # noqa: A002
    data = client.get("/v2/usergroups", params={"filter": filter, "limit": limit, "skip": skip}) or []
    return [UserGroup.model_validate(group) for group in data]


def get_user_group(client: JumpCloudClient, group_id: str) -> UserGroup:
    return UserGroup.model_validate(client.get(f"/v2/usergroups/{group_id}"))


def create_user_group(client: JumpCloudClient, request: UserGroupRequest) -> UserGroup:
    group = UserGroup.model_validate(client.post("/v2/usergroups", json=request.to_payload()))
    logger.info("User group created", extra={"group_id": group.id, "group_name": group.name})
    return group


def update_user_group(client: JumpCloudClient, group_id: str, request: UserGroupRequest) -> UserGroup:
    group = UserGroup.model_validate(client.put(f"/v2/usergroups/{group_id}", json=request.to_payload()))
    logger.info("User group updated", extra={"group_id": group_id})
    return group


def delete_user_group(client: JumpCloudClient, group_id: str) -> None:
    client.delete(f"/v2/usergroups/{group_id}")
    logger.info("User group deleted", extra={"group_id": group_id})


#-----------------v2: graph edges-----------------#

def _connections(data: Optional[list]) -> list[GraphConnection]:
    return [GraphConnection.model_validate(item) for item in data or []]


def list_user_associations(client: JumpCloudClient, user_id: str, targets: str, limit: int, skip: int) -> list[GraphConnection]:
    params = {"targets": targets, "limit": limit, "skip": skip}
    return _connections(client.get(f"/v2/users/{user_id}/associations", params=params))


def list_user_group_members(client: JumpCloudClient, group_id: str, limit: int, skip: int) -> list[GraphConnection]:
    return _connections(client.get(f"/v2/usergroups/{group_id}/members", params={"limit": limit, "skip": skip}))


def modify_user_group_member(client: JumpCloudClient, group_id: str, request: UserGroupMemberRequest) -> None:
    client.post(f"/v2/usergroups/{group_id}/members", json=request.to_payload())


def list_user_group_associations(
    client: JumpCloudClient, group_id: str, targets: str, limit: int, skip: int
) -> list[GraphConnection]:
    params = {"targets": targets, "limit": limit, "skip": skip}
    return _connections(client.get(f"/v2/usergroups/{group_id}/associations", params=params))


def modify_user_group_association(client: JumpCloudClient, group_id: str, request: GraphManagementRequest) -> None:
    client.post(f"/v2/usergroups/{group_id}/associations", json=request.to_payload())
