"""Concurrent apply engine for group membership sync.

Sync actions computed by sync_state are applied on a bounded worker pool, one API call per action, each call
retried with exponential backoff. A failed action never stops the others: failures are collected and reported
together once every action was attempted. Nothing is re-ordered or rolled back, so after a partial failure the
remote state is a mix of applied and unapplied actions until the next read.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Sequence

import config
import errors
import jumpcloud
import workers
from entities.jumpcloud import MembershipOp, UserGroupMemberRequest
from sync_state import SyncAction, compute_sync_actions, split_actions

logger = config.get_logger(service="syncer")


@dataclass
class SyncOperationResult:
    """Result of a sync operation."""

    operation: str
    start_time: datetime
    end_time: Optional[datetime] = None
    success: bool = False

    # Statistics
    actions_planned: int = 0
    added: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)

    def log_start(self) -> None:
        logger.info(
            f"{self.operation} started",
            extra={
                "operation": self.operation,
                "start_time": self.start_time.isoformat(),
                "actions_planned": self.actions_planned,
            },
        )

    def log_completion(self) -> None:
        duration_ms = None
        if self.end_time:
            duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)

        logger.info(
            f"{self.operation} completed",
            extra={
                "operation": self.operation,
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat() if self.end_time else None,
                "duration_ms": duration_ms,
                "success": self.success,
                "actions_planned": self.actions_planned,
                "added": self.added,
                "removed": self.removed,
                "error_count": len(self.errors),
            },
        )

    def finish(self) -> SyncOperationResult:
        self.success = len(self.errors) == 0
        self.end_time = datetime.now(timezone.utc)
        self.log_completion()
        return self


def execute_sync_actions(
    actions: Sequence[SyncAction],
    execute: Callable[[SyncAction], None],
    cfg: config.Config,
    describe_failure: Callable[[SyncAction, Exception], str],
    cancel_event: Optional[threading.Event] = None,
    result: Optional[SyncOperationResult] = None,
) -> list[str]:
    """Run execute(action) for every action on the worker pool.

    Each action is retried per the configured policy. Returns one failure message per action that still failed,
    in action order; an empty list means every action was applied.
    """
    if not actions:
        return []

    policy = workers.RetryPolicy.from_config(cfg)
    results = workers.run_worker_pool(
        actions,
        lambda action: workers.call_with_retry(lambda: execute(action), policy, action.describe(), cancel_event),
        pool_size=cfg.worker_pool_size,
        cancel_event=cancel_event,
        name="sync",
    )

    failed: dict[SyncAction, str] = {}
    for work_result in results:
        action = work_result.item
        if work_result.ok:
            if result is not None:
                if action.action_type == "add":
                    result.added += 1
                else:
                    result.removed += 1
            continue
        message = describe_failure(action, work_result.error)  # type: ignore # noqa: PGH003
        logger.error(message)
        failed[action] = message

    failures = [failed[action] for action in actions if action in failed]
    if result is not None:
        result.errors.extend(failures)

    to_add, to_remove = split_actions(actions)
    logger.debug(
        f"Processed {len(actions)} sync actions",
        extra={"add": len(to_add), "remove": len(to_remove), "errors": len(failures)},
    )
    return failures


def toggle_group_member(client: jumpcloud.JumpCloudClient, group_id: str, user_id: str, op: MembershipOp) -> None:
    """Add or remove a single user to group edge.

    Adding an edge that already exists (409) and removing one that is already gone (404) are treated as done.
    """
    try:
        jumpcloud.modify_user_group_member(client, group_id, UserGroupMemberRequest(op=op, id=user_id))
    except errors.APIError as e:
        if op == "add" and e.status_code == 409:  # noqa: PLR2004
            logger.info("User is already a member of the group", extra={"group_id": group_id, "user_id": user_id})
            return
        if op == "remove" and errors.is_not_found(e):
            logger.info("User is already not a member of the group", extra={"group_id": group_id, "user_id": user_id})
            return
        raise
    logger.info(
        f"{'Added user to' if op == 'add' else 'Removed user from'} group",
        extra={"operation": f"{op}_member", "group_id": group_id, "user_id": user_id},
    )


def apply_user_group_actions(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    user_id: str,
    actions: Sequence[SyncAction],
    cancel_event: Optional[threading.Event] = None,
    result: Optional[SyncOperationResult] = None,
) -> list[str]:
    """Apply group actions for one user: each action's object is a group."""
    return execute_sync_actions(
        actions,
        lambda action: toggle_group_member(client, action.object_id, user_id, action.action_type),
        cfg,
        lambda action, e: f"error {action.action_type} user {user_id} to/from group {action.object_name} ({action.object_id}): {e}",
        cancel_event,
        result,
    )


def apply_group_member_actions(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    actions: Sequence[SyncAction],
    cancel_event: Optional[threading.Event] = None,
    result: Optional[SyncOperationResult] = None,
) -> list[str]:
    """Apply member actions for one group: each action's object is a user."""
    return execute_sync_actions(
        actions,
        lambda action: toggle_group_member(client, group_id, action.object_id, action.action_type),
        cfg,
        lambda action, e: f"error {action.action_type} user {action.object_name} ({action.object_id}) to/from group {group_id}: {e}",
        cancel_event,
        result,
    )


def _sync(
    operation: str,
    current: Iterable[str],
    desired: Iterable[str],
    names: Optional[Mapping[str, str]],
    apply: Callable[[Sequence[SyncAction], SyncOperationResult], list[str]],
) -> SyncOperationResult:
    result = SyncOperationResult(operation=operation, start_time=datetime.now(timezone.utc))
    actions = compute_sync_actions(current, desired, names)
    result.actions_planned = len(actions)
    if not actions:
        logger.debug(f"{operation}: no changes needed")
        return result.finish()

    result.log_start()
    failures = apply(actions, result)
    result.finish()
    if failures:
        raise errors.PartialSyncFailure(failures)
    return result


def read_back(read: Callable[[], Optional[dict]], fallback: dict) -> Optional[dict]:
    """State observed after a failed apply, or `fallback` when it cannot be read."""
    try:
        return read()
    except errors.JumpCloudError as e:
        logger.warning(f"Could not read state after a failed apply: {e}", extra={"fallback": fallback})
        return fallback


def sync_user_groups(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    user_id: str,
    current_group_ids: Iterable[str],
    desired_group_ids: Iterable[str],
    group_names: Optional[Mapping[str, str]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SyncOperationResult:
    """Converge a user's groups from current to desired.

    Args:
        group_names: Group ID to name lookup, used in failure messages.

    Raises:
        PartialSyncFailure: some actions failed after retries; the others were applied.
    """
    return _sync(
        "User group sync",
        current_group_ids,
        desired_group_ids,
        group_names,
        lambda actions, result: apply_user_group_actions(client, cfg, user_id, actions, cancel_event, result),
    )


def sync_group_members(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    group_id: str,
    current_user_ids: Iterable[str],
    desired_user_ids: Iterable[str],
    user_labels: Optional[Mapping[str, str]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SyncOperationResult:
    """Converge a group's members from current to desired.

    Raises:
        PartialSyncFailure: some actions failed after retries; the others were applied.
    """
    return _sync(
        "Group member sync",
        current_user_ids,
        desired_user_ids,
        user_labels,
        lambda actions, result: apply_group_member_actions(client, cfg, group_id, actions, cancel_event, result),
    )
