"""jumpcloud_user data source."""

from __future__ import annotations

import threading
from typing import Optional

import config
import jumpcloud
import resolver
from entities import BaseModel

DATA_SOURCE_TYPE = "jumpcloud_user"


class UserDataSourceArgs(BaseModel):
    email: str


def read_data_source(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> dict:
    query = UserDataSourceArgs.model_validate(args)
    user = resolver.resolve_user_by_email(client, cfg, query.email, cancel_event)
    return {"id": user.id, "email": user.email, "username": user.username}
