"""jumpcloud_application data source: look up an SSO application by name or display label."""

from __future__ import annotations

import threading
from typing import Optional

from pydantic import model_validator

import config
import errors
import jumpcloud
import workers
from entities import BaseModel

logger = config.get_logger(service="application")

DATA_SOURCE_TYPE = "jumpcloud_application"


class ApplicationDataSourceArgs(BaseModel):
    name: Optional[str] = None
    display_label: Optional[str] = None

    @model_validator(mode="after")
    def require_a_filter(self) -> ApplicationDataSourceArgs:  # noqa: ANN101
        if not self.name and not self.display_label:
            raise ValueError("either name or display_label must be provided")
        return self


def read_data_source(
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    args: dict,
    cancel_event: Optional[threading.Event] = None,
) -> dict:
    """Return the first application whose display name or display label matches."""
    query = ApplicationDataSourceArgs.model_validate(args)
    for page in workers.paginate(
        lambda limit, skip: jumpcloud.list_applications(client, limit, skip).results,
        cfg,
        "applications",
        cancel_event,
    ):
        for application in page:
            logger.debug(
                "Checking application",
                extra={"id": application.id, "display_name": application.display_name, "display_label": application.display_label},
            )
            if (query.name and application.display_name == query.name) or (
                query.display_label and application.display_label == query.display_label
            ):
                return {"id": application.id, "name": application.display_name, "display_label": application.display_label}

    raise errors.NotFound("no application found with the provided filters")
