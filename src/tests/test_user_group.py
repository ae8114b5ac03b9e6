import pytest
from hypothesis import given

import config
import errors
import user_group
from entities.jumpcloud import PosixGroup, UserGroupAttributes

from . import strategies
from .fakes import FakeJumpCloud


@given(strategies.posix_groups())
def test_posix_groups_flatten_and_expand(pairs: list[tuple[int, str]]):
    groups = [PosixGroup(id=group_id, name=name) for group_id, name in pairs]
    assert user_group.expand_posix_groups(user_group.flatten_posix_groups(groups)) == groups


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("", []),
        (None, []),
        ("5001:devs", [PosixGroup(id=5001, name="devs")]),
        ("5001:devs,5002:ops", [PosixGroup(id=5001, name="devs"), PosixGroup(id=5002, name="ops")]),
        ("5001:devs,broken,5002:ops", [PosixGroup(id=5001, name="devs"), PosixGroup(id=5002, name="ops")]),
        ("abc:devs,5002:ops", [PosixGroup(id=5002, name="ops")]),
        ("1:a:b", []),
    ],
)
def test_expand_posix_groups(value: str, expected: list[PosixGroup]):
    assert user_group.expand_posix_groups(value) == expected


def test_expand_attributes():
    assert user_group.expand_attributes(None) is None
    assert user_group.expand_attributes({"posix_groups": "not-a-pair"}) is None
    attributes = user_group.expand_attributes({"posix_groups": "5001:devs"})
    assert attributes == UserGroupAttributes(posix_groups=[PosixGroup(id=5001, name="devs")])
    assert attributes.to_payload() == {"posixGroups": [{"id": 5001, "name": "devs"}]}


def test_create_with_members(cfg: config.Config, jc: FakeJumpCloud):
    jane = jc.add_user("jane@example.com")
    john = jc.add_user("john@example.com")

    state = user_group.create(
        jc,
        cfg,
        {"name": "Developers", "attributes": {"posix_groups": "5001:devs"}, "members": ["john@example.com", "jane@example.com"]},
    )

    assert state["name"] == "Developers"
    assert state["attributes"] == {"posix_groups": "5001:devs"}
    assert state["members"] == ["jane@example.com", "john@example.com"]
    assert jc.members[state["id"]] == {jane, john}
    (create_call,) = jc.calls_to("POST", "/v2/usergroups")
    assert create_call.json == {"name": "Developers", "attributes": {"posixGroups": [{"id": 5001, "name": "devs"}]}}


def test_create_without_attributes(cfg: config.Config, jc: FakeJumpCloud):
    state = user_group.create(jc, cfg, {"name": "Plain"})

    assert state["attributes"] == {"posix_groups": ""}
    assert state["members"] == []
    assert jc.calls_to("POST", "/v2/usergroups")[0].json == {"name": "Plain"}


def test_create_with_unknown_member(cfg: config.Config, jc: FakeJumpCloud):
    with pytest.raises(errors.ResolutionFailed):
        user_group.create(jc, cfg, {"name": "Developers", "members": ["ghost@example.com"]})
    assert jc.groups == {}


def test_create_partial_failure_keeps_the_group(cfg: config.Config, jc: FakeJumpCloud):
    jc.add_user("jane@example.com")
    john = jc.add_user("john@example.com")
    jc.fail("POST", r"/v2/usergroups/[^/]+/members", object_id=john)

    with pytest.raises(errors.PartialSyncFailure) as exc_info:
        user_group.create(jc, cfg, {"name": "Admins", "members": ["jane@example.com", "john@example.com"]})

    (group_id,) = jc.groups
    assert exc_info.value.state["id"] == group_id
    assert exc_info.value.state["members"] == ["jane@example.com"]


def test_create_keeps_the_group_id_when_read_back_fails(cfg: config.Config, jc: FakeJumpCloud):
    jc.fail("GET", r"/v2/usergroups/[^/]+")

    with pytest.raises(errors.APIError) as exc_info:
        user_group.create(jc, cfg, {"name": "Admins"})

    (group_id,) = jc.groups
    assert exc_info.value.state == {"id": group_id}


def test_read_of_deleted_group_is_gone(cfg: config.Config, jc: FakeJumpCloud):
    assert user_group.read(jc, cfg, {"id": "deleted-group"}) is None


def test_update_renames_and_syncs_members(cfg: config.Config, jc: FakeJumpCloud):
    jane = jc.add_user("jane@example.com")
    jc.add_user("john@example.com")
    prior = user_group.create(jc, cfg, {"name": "Developers", "members": ["john@example.com"]})

    state = user_group.update(jc, cfg, prior, {"name": "Engineers", "members": ["jane@example.com"]})

    assert state["name"] == "Engineers"
    assert state["members"] == ["jane@example.com"]
    assert jc.members[prior["id"]] == {jane}
    (put,) = jc.calls_to("PUT", f"/v2/usergroups/{prior['id']}")
    assert put.json == {"name": "Engineers"}


def test_update_skips_member_sync_when_order_changed_only(cfg: config.Config, jc: FakeJumpCloud):
    jc.add_user("jane@example.com")
    jc.add_user("john@example.com")
    prior = user_group.create(jc, cfg, {"name": "Developers", "members": ["jane@example.com", "john@example.com"]})
    jc.calls.clear()

    user_group.update(jc, cfg, prior, {"name": "Developers", "members": ["john@example.com", "jane@example.com"]})

    assert jc.calls_to("POST", f"/v2/usergroups/{prior['id']}/members") == []
    assert jc.calls_to("GET", "/systemusers")[0].params["filter"].startswith("_id:$in:")


def test_update_without_declared_members_leaves_them(cfg: config.Config, jc: FakeJumpCloud):
    jane = jc.add_user("jane@example.com")
    prior = user_group.create(jc, cfg, {"name": "Developers", "members": ["jane@example.com"]})

    state = user_group.update(jc, cfg, prior, {"name": "Developers"})

    assert state["members"] == ["jane@example.com"]
    assert jc.members[prior["id"]] == {jane}


def test_delete(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Developers")

    user_group.delete(jc, cfg, {"id": group_id})

    assert group_id not in jc.groups


def test_delete_of_deleted_group_succeeds(cfg: config.Config, jc: FakeJumpCloud):
    user_group.delete(jc, cfg, {"id": "deleted-group"})


def test_delete_failure_is_reported(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Developers")
    jc.fail("DELETE", f"/v2/usergroups/{group_id}")

    with pytest.raises(errors.TransportError, match="error deleting user group"):
        user_group.delete(jc, cfg, {"id": group_id})


def test_import(cfg: config.Config, jc: FakeJumpCloud):
    jane = jc.add_user("jane@example.com")
    group_id = jc.add_group("Developers", members=(jane,))

    state = user_group.import_state(jc, cfg, group_id)

    assert state == {"id": group_id, "name": "Developers", "attributes": {"posix_groups": ""}, "members": ["jane@example.com"]}


#-----------------Data source-----------------#

def test_data_source(cfg: config.Config, jc: FakeJumpCloud):
    jane = jc.add_user("jane@example.com")
    jc.add_group("Developers Alumni")
    group_id = jc.add_group("Developers", members=(jane,))

    assert user_group.read_data_source(jc, cfg, {"group_name": "Developers"}) == {
        "id": group_id,
        "group_name": "Developers",
        "members": ["jane@example.com"],
    }


def test_data_source_not_found(cfg: config.Config, jc: FakeJumpCloud):
    jc.add_group("Developers Alumni")

    with pytest.raises(errors.NotFound, match="No user group found with name: Developers"):
        user_group.read_data_source(jc, cfg, {"group_name": "Developers"})
