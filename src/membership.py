"""Current membership edges read from the JumpCloud graph API."""

from __future__ import annotations

import threading
from typing import Optional

import config
import errors
import jumpcloud
import workers

logger = config.get_logger(service="membership")

USER_GROUP = "user_group"


def list_user_group_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    user_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> set[str]:
    """All group IDs the user is a member of.

    Raises:
        NotFound: the user does not exist.
        PaginationLimitExceeded: the API kept returning full pages past cfg.max_pages.
    """
    if not user_id:
        logger.debug("Empty user ID provided, no groups to fetch")
        return set()

    group_ids: set[str] = set()
    try:
        for page in workers.paginate(
            lambda limit, skip: jumpcloud.list_user_associations(client, user_id, USER_GROUP, limit, skip),
            cfg,
            f"groups of user {user_id}",
            cancel_event,
        ):
            group_ids.update(connection.to.id for connection in page if connection.to.id)
    except errors.TransportError as e:
        if errors.is_not_found(e):
            raise errors.NotFound(f"JumpCloud user {user_id} not found") from e
        raise

    logger.debug(f"Found {len(group_ids)} groups for user {user_id}")
    return group_ids


def get_user_group_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    user_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> set[str]:
    """Like list_user_group_ids, but a user that no longer exists simply has no groups."""
    try:
        return list_user_group_ids(client, cfg, user_id, cancel_event)
    except errors.NotFound:
        logger.warning(f"User {user_id} not found, returning empty group list")
        return set()


def get_group_member_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> set[str]:
    """All user IDs that are members of the group.

    Raises:
        NotFound: the group does not exist.
    """
    member_ids: set[str] = set()
    try:
        for page in workers.paginate(
            lambda limit, skip: jumpcloud.list_user_group_members(client, group_id, limit, skip),
            cfg,
            f"members of group {group_id}",
            cancel_event,
        ):
            member_ids.update(connection.to.id for connection in page if connection.to.id)
    except errors.TransportError as e:
        if errors.is_not_found(e):
            raise errors.NotFound(f"JumpCloud user group {group_id} not found") from e
        raise
    return member_ids


def is_user_in_group(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    user_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> bool:
    """Check a single edge, stopping at the first page that contains the user."""
    try:
        for page in workers.paginate(
            lambda limit, skip: jumpcloud.list_user_group_members(client, group_id, limit, skip),
            cfg,
            f"members of group {group_id}",
            cancel_event,
        ):
            if any(connection.to.id == user_id for connection in page):
                logger.info("User is in the group", extra={"group_id": group_id, "user_id": user_id})
                return True
    except errors.TransportError as e:
        if errors.is_not_found(e):
            return False
        raise
    return False


def get_group_association_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    target_type: str,
    cancel_event: Optional[threading.Event] = None,
) -> set[str]:
    """IDs of the objects of `target_type` associated with the group. A missing group has none."""
    object_ids: set[str] = set()
    try:
        for page in workers.paginate(
            lambda limit, skip: jumpcloud.list_user_group_associations(client, group_id, target_type, limit, skip),
            cfg,
            f"{target_type} associations of group {group_id}",
            cancel_event,
        ):
            object_ids.update(connection.to.id for connection in page if connection.to.id)
    except errors.TransportError as e:
        if not errors.is_not_found(e):
            raise
        logger.warning(f"User group {group_id} not found, returning no associations")
    return object_ids
