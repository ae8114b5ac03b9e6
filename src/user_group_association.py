"""jumpcloud_user_group_association resource: a user group bound to a directory object.

Objects are SSO applications, G Suite, Office 365, LDAP servers, policies and the like. The resource ID is
"group_id/object_id/type".
"""

from __future__ import annotations

import threading
from typing import Literal, Optional

import config
import errors
import jumpcloud
import membership
import workers
from entities import BaseModel
from entities.jumpcloud import GraphManagementRequest, MembershipOp

logger = config.get_logger(service="user_group_association")

RESOURCE_TYPE = "jumpcloud_user_group_association"

AssociationType = Literal[
    "active_directory",
    "application",
    "command",
    "g_suite",
    "ldap_server",
    "office_365",
    "policy",
    "radius_server",
    "system",
    "system_group",
]


class UserGroupAssociationArgs(BaseModel):
    group_id: str
    object_id: str
    type: AssociationType

    @property
    def id(self) -> str:
        return f"{self.group_id}/{self.object_id}/{self.type}"


def parse_id(import_id: str) -> UserGroupAssociationArgs:
    parts = import_id.split("/")
    if len(parts) != 3 or not all(parts):  # noqa: PLR2004
        raise errors.ConfigurationError(f"unexpected format of ID ({import_id}), expected <group_id>/<object_id>/<type>")
    group_id, object_id, object_type = parts
    return UserGroupAssociationArgs.model_validate({"group_id": group_id, "object_id": object_id, "type": object_type})


def _modify(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    association: UserGroupAssociationArgs,
    op: MembershipOp,
    cancel_event: Optional[threading.Event],
) -> None:
    request = GraphManagementRequest(op=op, type=association.type, id=association.object_id)
    try:
        workers.call_with_retry(
            lambda: jumpcloud.modify_user_group_association(client, association.group_id, request),
            workers.RetryPolicy.from_config(cfg),
            f"{op} {association.type} {association.object_id} to/from group {association.group_id}",
            cancel_event,
        )
    except errors.TransportError as e:
        if op == "remove" and errors.is_not_found(e):
            logger.info(f"Association {association.id} already removed")
            return
        verb = "creating" if op == "add" else "deleting"
        raise errors.TransportError(f"Error {verb} user group association: {e}") from e
    logger.info(f"User group association {'added' if op == 'add' else 'removed'}", extra={"association": association.id})


def create(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    association = UserGroupAssociationArgs.model_validate(args)
    _modify(client, cfg, association, "add", cancel_event)
    return read(client, cfg, association.to_dict(), cancel_event)


def read(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    association = UserGroupAssociationArgs.model_validate(prior_state)
    object_ids = membership.get_group_association_ids(client, cfg, association.group_id, association.type, cancel_event)
    if association.object_id not in object_ids:
        logger.warning(f"Association {association.id} not found, removing it from state")
        return None
    return {"id": association.id, **association.to_dict()}


def delete(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    association = UserGroupAssociationArgs.model_validate(prior_state)
    _modify(client, cfg, association, "remove", cancel_event)


def import_state(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    import_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    association = parse_id(import_id)
    return read(client, cfg, association.to_dict(), cancel_event)
