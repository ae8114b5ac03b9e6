"""jumpcloud_user_group resource and data source."""

from __future__ import annotations

import threading
from typing import Optional

import config
import errors
import jumpcloud
import membership
import resolver
import state
import syncer
import workers
from entities import BaseModel
from entities.jumpcloud import PosixGroup, UserGroupAttributes, UserGroupRequest

logger = config.get_logger(service="user_group")

RESOURCE_TYPE = "jumpcloud_user_group"

POSIX_GROUPS = "posix_groups"


class UserGroupArgs(BaseModel):
    name: str
    attributes: Optional[dict[str, str]] = None
    members: Optional[list[str]] = None


class UserGroupState(BaseModel):
    id: str
    name: str = ""
    attributes: dict[str, str] = {}
    members: list[str] = []


class UserGroupDataSourceArgs(BaseModel):
    group_name: str


#-----------------Posix group attributes-----------------#

def flatten_posix_groups(groups: list[PosixGroup]) -> str:
    return ",".join(f"{group.id}:{group.name}" for group in groups)


def expand_posix_groups(value: Optional[str]) -> list[PosixGroup]:
    """Parse "id:name,id:name". Pairs that are malformed or have a non-numeric ID are skipped."""
    groups: list[PosixGroup] = []
    for pair in (value or "").split(","):
        parts = pair.strip().split(":")
        if len(parts) != 2:  # noqa: PLR2004
            continue
        group_id, name = parts
        try:
            groups.append(PosixGroup(id=int(group_id), name=name))
        except ValueError:
            logger.debug(f"Skipping posix group with non-numeric ID: {pair!r}")
    return groups


def expand_attributes(attributes: Optional[dict[str, str]]) -> Optional[UserGroupAttributes]:
    """None unless the attributes declare at least one valid posix group."""
    if not attributes:
        return None
    posix_groups = expand_posix_groups(attributes.get(POSIX_GROUPS))
    if not posix_groups:
        return None
    return UserGroupAttributes(posix_groups=posix_groups)


def flatten_attributes(attributes: Optional[UserGroupAttributes]) -> dict[str, str]:
    return {POSIX_GROUPS: flatten_posix_groups(attributes.posix_groups if attributes else [])}


#-----------------Resource-----------------#

def _member_labels(emails_to_ids: dict[str, str]) -> dict[str, str]:
    return {user_id: email for email, user_id in emails_to_ids.items()}


def create(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    desired = UserGroupArgs.model_validate(args)
    # Unknown members fail the call before the group exists.
    members = resolver.user_emails_to_ids(client, cfg, desired.members, cancel_event) if desired.members else {}

    request = UserGroupRequest(name=desired.name, attributes=expand_attributes(desired.attributes))
    try:
        group = jumpcloud.create_user_group(client, request)
    except errors.TransportError as e:
        raise errors.TransportError(f"error creating user group {desired.name}: {e}") from e

    created = {"id": group.id}
    try:
        if members:
            syncer.sync_group_members(client, cfg, group.id, [], members.values(), _member_labels(members), cancel_event)
    except errors.PartialSyncFailure as e:
        e.state = syncer.read_back(lambda: read(client, cfg, created, cancel_event), created)
        raise

    try:
        return read(client, cfg, created, cancel_event)
    except errors.JumpCloudError as e:
        # The group exists remotely even though it could not be read back.
        e.state = created
        raise


def read(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """Return the observed group, or None when it was deleted remotely."""
    prior = UserGroupState.model_validate(prior_state)
    try:
        group = workers.call_with_retry(
            lambda: jumpcloud.get_user_group(client, prior.id),
            workers.RetryPolicy.from_config(cfg),
            f"user group {prior.id}",
            cancel_event,
        )
        member_ids = membership.get_group_member_ids(client, cfg, prior.id, cancel_event)
    except errors.JumpCloudError as e:
        if errors.is_not_found(e):
            logger.warning(f"User group {prior.id} not found, removing it from state")
            return None
        raise

    emails = resolver.user_ids_to_emails(client, cfg, member_ids, cancel_event)
    observed = UserGroupState(
        id=group.id,
        name=group.name,
        attributes=flatten_attributes(group.attributes),
        members=state.sorted_unique(emails.values()),
    )
    return observed.to_dict()


def update(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    prior = UserGroupState.model_validate(prior_state)
    desired = UserGroupArgs.model_validate(args)

    request = UserGroupRequest(name=desired.name, attributes=expand_attributes(desired.attributes))
    try:
        jumpcloud.update_user_group(client, prior.id, request)
    except errors.TransportError as e:
        raise errors.TransportError(f"error updating user group {prior.id}: {e}") from e

    if desired.members is None or state.equal_ignoring_order(prior.members, desired.members):
        logger.debug("Declared members unchanged, skipping member sync")
    else:
        current = membership.get_group_member_ids(client, cfg, prior.id, cancel_event)
        members = resolver.user_emails_to_ids(client, cfg, desired.members, cancel_event)
        try:
            syncer.sync_group_members(client, cfg, prior.id, current, members.values(), _member_labels(members), cancel_event)
        except errors.PartialSyncFailure as e:
            e.state = syncer.read_back(lambda: read(client, cfg, prior_state, cancel_event), prior_state)
            raise

    return read(client, cfg, prior_state, cancel_event)


def delete(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,  # noqa: ARG001
) -> None:
    prior = UserGroupState.model_validate(prior_state)
    try:
        jumpcloud.delete_user_group(client, prior.id)
    except errors.TransportError as e:
        if errors.is_not_found(e):
            logger.info(f"User group {prior.id} already deleted")
            return
        raise errors.TransportError(f"error deleting user group {prior.id}: {e}") from e


def import_state(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    import_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """Import by group ID."""
    if not import_id:
        raise errors.ConfigurationError("import ID must be the user group ID")
    return read(client, cfg, {"id": import_id}, cancel_event)


#-----------------Data source-----------------#

def read_data_source(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> dict:
    """Look up a group by exact name, with its member emails."""
    query = UserGroupDataSourceArgs.model_validate(args)
    groups = resolver.find_user_groups_by_name(client, cfg, query.group_name, cancel_event)
    if not groups:
        raise errors.NotFound(f"No user group found with name: {query.group_name}")

    group = groups[0]
    member_ids = membership.get_group_member_ids(client, cfg, group.id, cancel_event)
    emails = resolver.user_ids_to_emails(client, cfg, member_ids, cancel_event)
    return {"id": group.id, "group_name": group.name, "members": state.sorted_unique(emails.values())}
