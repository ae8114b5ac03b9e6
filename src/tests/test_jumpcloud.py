from unittest.mock import MagicMock

import pytest
import requests

import config
import errors
import jumpcloud
from entities.jumpcloud import UserGroupMemberRequest


def _response(status_code: int = 200, body: object = None, content: bytes = b"{}") -> MagicMock:
    resp = MagicMock(status_code=status_code, content=content, text="boom")
    resp.json.return_value = body
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


def test_headers_and_url(cfg: config.Config, session: MagicMock):
    session.request.return_value = _response(body=[])
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    jumpcloud.list_user_groups(client, jumpcloud.name_filter("Admins"), limit=100, skip=200)

    session.request.assert_called_once_with(
        "GET",
        "https://jumpcloud.test/api/v2/usergroups",
        params={"filter": "name:eq:Admins", "limit": 100, "skip": 200},
        json=None,
        headers={"x-api-key": "x", "Accept": "application/json", "Content-Type": "application/json"},
        timeout=30,
    )


def test_org_header(cfg: config.Config, session: MagicMock):
    client = jumpcloud.JumpCloudClient(cfg.model_copy(update={"org_id": "org-1"}), session=session)
    assert client.headers["x-org-id"] == "org-1"


def test_error_status_raises_api_error(cfg: config.Config, session: MagicMock):
    session.request.return_value = _response(status_code=404)
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    with pytest.raises(errors.APIError) as e:
        jumpcloud.get_user_group(client, "g1")

    assert e.value.status_code == 404
    assert e.value.endpoint == "GET /v2/usergroups/g1"
    assert errors.is_not_found(e.value)


def test_no_content(cfg: config.Config, session: MagicMock):
    session.request.return_value = _response(status_code=204, content=b"")
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    jumpcloud.modify_user_group_member(client, "g1", UserGroupMemberRequest(op="add", id="u1"))

    assert session.request.call_args.kwargs["json"] == {"op": "add", "type": "user", "id": "u1"}


def test_invalid_json(cfg: config.Config, session: MagicMock):
    resp = _response()
    resp.json.side_effect = ValueError("Expecting value")
    session.request.return_value = resp
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    with pytest.raises(errors.TransportError, match="invalid JSON"):
        client.get("/v2/usergroups")


def test_network_failure(cfg: config.Config, session: MagicMock):
    session.request.side_effect = requests.ConnectionError("connection reset")
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    with pytest.raises(errors.TransportError, match="connection reset"):
        client.get("/systemusers")


def test_system_users_page(cfg: config.Config, session: MagicMock):
    session.request.return_value = _response(
        body={"totalCount": 1, "results": [{"_id": "u1", "email": "jane@example.com", "username": "jane"}]}
    )
    client = jumpcloud.JumpCloudClient(cfg, session=session)

    page = jumpcloud.list_system_users(client, jumpcloud.eq_filter("email", "jane@example.com"), limit=100, skip=0)

    assert page.total_count == 1
    assert page.results[0].id == "u1"
    assert session.request.call_args.kwargs["params"]["filter"] == "email:$eq:jane@example.com"


def test_filters():
    assert jumpcloud.name_filter("Dev Ops") == "name:eq:Dev Ops"
    assert jumpcloud.in_filter("_id", ["a", "b"]) == "_id:$in:a|b"
