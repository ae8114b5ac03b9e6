"""Sync state for group membership reconciliation.

This module compares the current and desired sets of object IDs on one side of a membership edge and computes the
minimal list of add/remove actions that converts one into the other. It performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Mapping, Optional

from config import get_logger

logger = get_logger(service="sync_state")


@dataclass(frozen=True)
class SyncAction:
    """An action to take during sync.

    Attributes:
        action_type: Type of action - "add" or "remove".
        object_id: ID of the object on the far end of the edge (a group when syncing a user's groups,
            a user when syncing a group's members).
        object_name: Human-readable name used in logs and failure messages.
    """

    action_type: Literal["add", "remove"]
    object_id: str
    object_name: str

    def describe(self) -> str:
        return f"{self.action_type} {self.object_name} ({self.object_id})"


def compute_sync_actions(
    current: Iterable[str],
    desired: Iterable[str],
    names: Optional[Mapping[str, str]] = None,
) -> list[SyncAction]:
    """Compute all actions needed to reach desired state.

    Adds are desired - current and removes are current - desired, so no ID appears in more than one action.
    Empty IDs are ignored on both sides.

    Args:
        current: IDs currently on the edge set.
        desired: IDs that should be on the edge set.
        names: Optional ID to name lookup for diagnostics. IDs missing from it are named by their ID.

    Returns:
        List of SyncAction objects, adds first, each group sorted by ID.
    """
    names = names or {}
    current_ids = {object_id for object_id in current if object_id}
    desired_ids = {object_id for object_id in desired if object_id}

    to_add = desired_ids - current_ids
    to_remove = current_ids - desired_ids

    actions = [SyncAction("add", object_id, names.get(object_id, object_id)) for object_id in sorted(to_add)]
    actions.extend(SyncAction("remove", object_id, names.get(object_id, object_id)) for object_id in sorted(to_remove))

    logger.debug(
        "Computed sync actions",
        extra={"current": len(current_ids), "desired": len(desired_ids), "add": len(to_add), "remove": len(to_remove)},
    )
    return actions


def split_actions(actions: Iterable[SyncAction]) -> tuple[set[str], set[str]]:
    """Return the (add, remove) ID sets of a list of actions."""
    to_add: set[str] = set()
    to_remove: set[str] = set()
    for action in actions:
        (to_add if action.action_type == "add" else to_remove).add(action.object_id)
    return to_add, to_remove
