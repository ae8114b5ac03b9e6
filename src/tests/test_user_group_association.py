import pytest
from pydantic import ValidationError

import config
import errors
import user_group_association

from .fakes import FakeJumpCloud


def test_create_read_delete(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Admins")

    state = user_group_association.create(jc, cfg, {"group_id": group_id, "object_id": "app1", "type": "application"})

    assert state == {"id": f"{group_id}/app1/application", "group_id": group_id, "object_id": "app1", "type": "application"}
    (post,) = jc.calls_to("POST", f"/v2/usergroups/{group_id}/associations")
    assert post.json == {"op": "add", "type": "application", "id": "app1"}
    read_call = jc.calls_to("GET", f"/v2/usergroups/{group_id}/associations")[0]
    assert read_call.params["targets"] == "application"

    user_group_association.delete(jc, cfg, state)

    assert user_group_association.read(jc, cfg, state) is None


def test_read_checks_the_declared_type(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Admins")
    jc.associations[group_id] = {"system": {"obj1"}}

    assert user_group_association.read(jc, cfg, {"group_id": group_id, "object_id": "obj1", "type": "system"}) is not None
    assert user_group_association.read(jc, cfg, {"group_id": group_id, "object_id": "obj1", "type": "policy"}) is None


def test_delete_of_missing_association_succeeds(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Admins")
    user_group_association.delete(jc, cfg, {"group_id": group_id, "object_id": "gone", "type": "command"})


def test_create_failure_is_reported(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Admins")
    jc.fail("POST", f"/v2/usergroups/{group_id}/associations")

    with pytest.raises(errors.TransportError, match="Error creating user group association"):
        user_group_association.create(jc, cfg, {"group_id": group_id, "object_id": "app1", "type": "application"})


def test_unsupported_type_is_rejected(cfg: config.Config, jc: FakeJumpCloud):
    with pytest.raises(ValidationError):
        user_group_association.create(jc, cfg, {"group_id": "g", "object_id": "o", "type": "user"})
    assert jc.calls == []


def test_import(cfg: config.Config, jc: FakeJumpCloud):
    group_id = jc.add_group("Admins")
    jc.associations[group_id] = {"g_suite": {"gs1"}}

    state = user_group_association.import_state(jc, cfg, f"{group_id}/gs1/g_suite")

    assert state == {"id": f"{group_id}/gs1/g_suite", "group_id": group_id, "object_id": "gs1", "type": "g_suite"}


@pytest.mark.parametrize("import_id", ["", "g/o", "g/o/system/extra", "g//system"])
def test_import_id_format(cfg: config.Config, jc: FakeJumpCloud, import_id: str):
    with pytest.raises(errors.ConfigurationError, match="<group_id>/<object_id>/<type>"):
        user_group_association.import_state(jc, cfg, import_id)
