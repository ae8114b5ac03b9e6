"""jumpcloud_user_group_membership resource: a single user to group edge, ID "groupid/userid"."""

from __future__ import annotations

import threading
from typing import Optional

import config
import errors
import jumpcloud
import membership
import syncer
import workers
from entities import BaseModel
from entities.jumpcloud import MembershipOp

logger = config.get_logger(service="user_group_membership")

RESOURCE_TYPE = "jumpcloud_user_group_membership"


class UserGroupMembershipArgs(BaseModel):
    userid: str
    groupid: str

    @property
    def id(self) -> str:
        return f"{self.groupid}/{self.userid}"


def parse_id(import_id: str) -> UserGroupMembershipArgs:
    parts = import_id.split("/")
    if len(parts) != 2 or not all(parts):  # noqa: PLR2004
        raise errors.ConfigurationError(f"Invalid import format {import_id!r}. Expected 'groupid/userid'")
    group_id, user_id = parts
    return UserGroupMembershipArgs(groupid=group_id, userid=user_id)


def _toggle(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    edge: UserGroupMembershipArgs,
    op: MembershipOp,
    cancel_event: Optional[threading.Event],
) -> None:
    workers.call_with_retry(
        lambda: syncer.toggle_group_member(client, edge.groupid, edge.userid, op),
        workers.RetryPolicy.from_config(cfg),
        f"{op} user {edge.userid} to/from group {edge.groupid}",
        cancel_event,
    )


def create(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    edge = UserGroupMembershipArgs.model_validate(args)
    _toggle(client, cfg, edge, "add", cancel_event)
    return read(client, cfg, edge.to_dict(), cancel_event)


def read(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """The edge, or None when the user is no longer in the group."""
    edge = UserGroupMembershipArgs.model_validate(prior_state)
    if not membership.is_user_in_group(client, cfg, edge.groupid, edge.userid, cancel_event):
        logger.warning(f"User {edge.userid} is not a member of group {edge.groupid}, removing it from state")
        return None
    return {"id": edge.id, **edge.to_dict()}


def delete(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    edge = UserGroupMembershipArgs.model_validate(prior_state)
    _toggle(client, cfg, edge, "remove", cancel_event)


def import_state(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    import_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    edge = parse_id(import_id)
    imported = read(client, cfg, edge.to_dict(), cancel_event)
    if imported is None:
        raise errors.NotFound(f"User {edge.userid} is not a member of group {edge.groupid}")
    return imported
