"""Lifecycle of the jumpcloud_user_group_memberships resource: every group membership of one user.

The resource is anchored on a user, declared by email and stored by ID. Its state holds the sorted group names
and the name to ID map observed on the last read.

Failures while resolving names or fetching current edges abort before anything is mutated. Failures while
applying are partial: PartialSyncFailure is raised after every action was attempted, and the next read shows what
actually changed.
"""

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
from entities import BaseModel

logger = config.get_logger(service="reconciler")

RESOURCE_TYPE = "jumpcloud_user_group_memberships"


class UserGroupMembershipsArgs(BaseModel):
    user_email: str
    groups: frozenset[str] = frozenset()


class UserGroupMembershipsState(BaseModel):
    id: str
    user_email: str = ""
    user_id: str = ""
    groups: list[str] = []
    group_ids: dict[str, str] = {}


def create(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    desired = UserGroupMembershipsArgs.model_validate(args)
    logger.info("Creating user group memberships", extra={"user_email": desired.user_email, "groups": len(desired.groups)})

    try:
        user = resolver.resolve_user_by_email(client, cfg, desired.user_email, cancel_event)
    except errors.NotFound as e:
        raise errors.ResolutionFailed("user", {desired.user_email: str(e)}) from e

    group_name_to_id = resolver.resolve_group_names(client, cfg, desired.groups, cancel_event)
    current_group_ids = membership.get_user_group_ids(client, cfg, user.id, cancel_event)
    created = UserGroupMembershipsState(id=user.id, user_email=desired.user_email, user_id=user.id).to_dict()
    try:
        syncer.sync_user_groups(
            client,
            cfg,
            user.id,
            current_group_ids,
            group_name_to_id.values(),
            {group_id: name for name, group_id in group_name_to_id.items()},
            cancel_event,
        )
    except errors.PartialSyncFailure as e:
        e.state = syncer.read_back(lambda: read(client, cfg, created, cancel_event), created)
        raise

    return read(client, cfg, created, cancel_event)


def read(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """Return the observed state, or None when the user is gone."""
    prior = UserGroupMembershipsState.model_validate(prior_state)
    if not prior.id:
        return None

    try:
        current_group_ids = membership.list_user_group_ids(client, cfg, prior.id, cancel_event)
    except errors.NotFound:
        logger.warning(f"User {prior.id} not found, removing user group memberships from state")
        return None

    group_id_to_name = resolver.resolve_group_ids(client, cfg, current_group_ids, cancel_event)
    observed = UserGroupMembershipsState(
        id=prior.id,
        user_email=prior.user_email,
        user_id=prior.id,
        groups=state.sorted_unique(group_id_to_name.values()),
        group_ids={name: group_id for group_id, name in group_id_to_name.items()},
    )
    return observed.to_dict()


def update(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """Apply the difference between the previously declared groups and the newly declared ones."""
    prior = UserGroupMembershipsState.model_validate(prior_state)
    desired = UserGroupMembershipsArgs.model_validate(args)

    if prior.user_email and desired.user_email.lower() != prior.user_email.lower():
        raise errors.ConfigurationError(
            f"user_email cannot change in place ({prior.user_email} -> {desired.user_email}), the resource must be replaced"
        )

    old_names = set(prior.groups)
    new_names = set(desired.groups)
    if state.equal_ignoring_order(sorted(old_names), sorted(new_names)):
        logger.debug("Declared groups unchanged, nothing to sync")
        return read(client, cfg, prior_state, cancel_event)

    # One batch for both sides avoids resolving shared names twice.
    group_name_to_id = resolver.resolve_group_names(client, cfg, old_names | new_names, cancel_event)
    old_group_ids = [group_name_to_id[name] for name in old_names if name in group_name_to_id]
    new_group_ids = [group_name_to_id[name] for name in new_names if name in group_name_to_id]

    updated = prior.model_copy(update={"user_email": desired.user_email}).to_dict()
    try:
        syncer.sync_user_groups(
            client,
            cfg,
            prior.id,
            old_group_ids,
            new_group_ids,
            {group_id: name for name, group_id in group_name_to_id.items()},
            cancel_event,
        )
    except errors.PartialSyncFailure as e:
        e.state = syncer.read_back(lambda: read(client, cfg, updated, cancel_event), prior_state)
        raise

    return read(client, cfg, updated, cancel_event)


def delete(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    prior_state: dict,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """Remove the user from every group. A user that no longer exists counts as already deleted."""
    prior = UserGroupMembershipsState.model_validate(prior_state)
    try:
        current_group_ids = membership.list_user_group_ids(client, cfg, prior.id, cancel_event)
    except errors.NotFound:
        logger.info(f"User {prior.id} not found, nothing to delete")
        return

    names = {group_id: name for name, group_id in prior.group_ids.items()}
    try:
        syncer.sync_user_groups(client, cfg, prior.id, current_group_ids, [], names, cancel_event)
    except errors.PartialSyncFailure as e:
        e.state = syncer.read_back(lambda: read(client, cfg, prior_state, cancel_event), prior_state)
        raise


def import_state(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    import_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[dict]:
    """Import by the user's email."""
    email = import_id.strip()
    if not email:
        raise errors.ConfigurationError("import ID must be the user's email")

    user = resolver.resolve_user_by_email(client, cfg, email, cancel_event)
    imported = UserGroupMembershipsState(id=user.id, user_email=email, user_id=user.id)
    return read(client, cfg, imported.to_dict(), cancel_event)
