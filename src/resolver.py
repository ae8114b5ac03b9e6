"""Identifier resolution: human keys (group names, user emails) to remote object IDs and back.

Batch lookups fan out over a bounded worker pool. A batch fails only after every item was attempted, and the
raised ResolutionFailed lists every key that could not be resolved.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

import config
import errors
import jumpcloud
import workers
from entities.jumpcloud import SystemUser, UserGroup

logger = config.get_logger(service="resolver")


def find_user_groups_by_name(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    name: str,
    cancel_event: Optional[threading.Event] = None,
) -> list[UserGroup]:
    """Return every group whose name is exactly `name`.

    The remote filter may match partially, so results are re-filtered locally. A 404 from the list endpoint
    means no match.
    """
    matches: list[UserGroup] = []
    try:
        for page in workers.paginate(
            lambda limit, skip: jumpcloud.list_user_groups(client, jumpcloud.name_filter(name), limit, skip),
            cfg,
            f"user groups named {name!r}",
            cancel_event,
        ):
            matches.extend(group for group in page if group.name == name)
    except errors.TransportError as e:
        if not errors.is_not_found(e):
            raise
        logger.debug(f"Group lookup for {name!r} returned not found")
    return matches


def get_group_id_by_name(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    name: str,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    group_ids = {group.id for group in find_user_groups_by_name(client, cfg, name, cancel_event)}
    if not group_ids:
        raise errors.AmbiguousOrMissing("group", name, "no group with this name")
    if len(group_ids) > 1:
        raise errors.AmbiguousOrMissing("group", name, f"{len(group_ids)} groups share this name: {sorted(group_ids)}")
    return group_ids.pop()


def resolve_group_names(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    names: Iterable[str],
    cancel_event: Optional[threading.Event] = None,
) -> dict[str, str]:
    """Map every group name to its ID.

    Raises:
        ResolutionFailed: one or more names errored after retries, matched nothing, or matched several groups.
    """
    unique_names = sorted(set(names))
    if not unique_names:
        return {}

    logger.debug(f"Looking up {len(unique_names)} groups by name")
    results = workers.run_worker_pool(
        unique_names,
        lambda name: get_group_id_by_name(client, cfg, name, cancel_event),
        pool_size=cfg.worker_pool_size,
        cancel_event=cancel_event,
        name="group-name-lookup",
    )

    resolved: dict[str, str] = {}
    failures: dict[str, str] = {}
    for result in results:
        if result.ok:
            resolved[result.item] = result.value  # type: ignore # noqa: PGH003
        else:
            failures[result.item] = str(result.error)

    if failures:
        raise errors.ResolutionFailed("group", failures)

    logger.debug(f"Looked up {len(resolved)} groups by name")
    return resolved


def get_group_name_by_id(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[str]:
    """Return the group's name, or None when the group no longer exists."""
    try:
        group = workers.call_with_retry(
            lambda: jumpcloud.get_user_group(client, group_id),
            workers.RetryPolicy.from_config(cfg),
            f"user group {group_id}",
            cancel_event,
        )
    except errors.TransportError as e:
        if errors.is_not_found(e):
            return None
        raise
    return group.name


def resolve_group_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_ids: Iterable[str],
    cancel_event: Optional[threading.Event] = None,
) -> dict[str, str]:
    """Map group IDs to names. Groups deleted remotely are left out of the result.

    Raises:
        ResolutionFailed: one or more IDs errored after retries.
    """
    unique_ids = sorted({group_id for group_id in group_ids if group_id})
    if not unique_ids:
        return {}

    logger.debug(f"Looking up {len(unique_ids)} groups by ID")
    results = workers.run_worker_pool(
        unique_ids,
        lambda group_id: get_group_name_by_id(client, cfg, group_id, cancel_event),
        pool_size=cfg.worker_pool_size,
        cancel_event=cancel_event,
        name="group-id-lookup",
    )

    resolved: dict[str, str] = {}
    failures: dict[str, str] = {}
    for result in results:
        if not result.ok:
            failures[result.item] = str(result.error)
        elif result.value:
            resolved[result.item] = result.value
        else:
            logger.debug(f"Group {result.item} no longer exists, skipping")

    if failures:
        raise errors.ResolutionFailed("group ID", failures)
    return resolved


#-----------------Users-----------------#

def resolve_user_by_email(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    email: str,
    cancel_event: Optional[threading.Event] = None,
) -> SystemUser:
    """Look up the single user with this email.

    Raises:
        NotFound: no user has exactly this email.
    """
    for page in workers.paginate(
        lambda limit, skip: jumpcloud.list_system_users(client, jumpcloud.eq_filter("email", email), limit, skip).results,
        cfg,
        f"users with email {email}",
        cancel_event,
    ):
        for user in page:
            if user.email.lower() == email.lower():
                return user
    raise errors.NotFound(f"JumpCloud user with email {email} not found")


def _chunks(values: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _list_users_in(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    field: str,
    values: Iterable[str],
    cancel_event: Optional[threading.Event],
) -> list[SystemUser]:
    """Fetch users whose `field` is one of `values`, in chunks so that filters stay short."""
    users: list[SystemUser] = []
    unique_values = sorted({v for v in values if v})
    for chunk in _chunks(unique_values, cfg.page_size):
        for page in workers.paginate(
            lambda limit, skip, chunk=chunk: jumpcloud.list_system_users(
                client, jumpcloud.in_filter(field, chunk), limit, skip, fields="_id email", sort=field
            ).results,
            cfg,
            f"users by {field}",
            cancel_event,
        ):
            users.extend(page)
    return users


def user_emails_to_ids(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    emails: Iterable[str],
    cancel_event: Optional[threading.Event] = None,
) -> dict[str, str]:
    """Map user emails to IDs.

    Raises:
        ResolutionFailed: some emails do not belong to any user.
    """
    wanted = {email.lower(): email for email in emails if email}
    resolved = {
        wanted[user.email.lower()]: user.id
        for user in _list_users_in(client, cfg, "email", wanted.values(), cancel_event)
        if user.email.lower() in wanted
    }
    missing = sorted(set(wanted.values()) - set(resolved))
    if missing:
        raise errors.ResolutionFailed("user", {email: "no user with this email" for email in missing})
    return resolved


def user_ids_to_emails(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    user_ids: Iterable[str],
    cancel_event: Optional[threading.Event] = None,
) -> dict[str, str]:
    """Map user IDs to emails. Users that no longer exist are left out."""
    wanted = set(user_ids)
    return {user.id: user.email for user in _list_users_in(client, cfg, "_id", wanted, cancel_event) if user.id in wanted}
