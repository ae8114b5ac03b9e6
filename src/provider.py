"""Entry point for the host runtime.

The host sends one lifecycle request per call (create, read, update, delete, import, or a data source read) and
gets back `{"success": bool, "state": dict | None, "error": str | None}`. A `state` of None on a successful read
means the object is gone and the host should drop it. Errors never escape `handle`.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Literal, Optional, Union

from pydantic import Field, RootModel, ValidationError

import application
import config
import errors
import jumpcloud
import reconciler
import user
import user_group
import user_group_association
import user_group_membership
from entities import BaseModel

logger = config.get_logger(service="provider")

RESOURCES: dict[str, Any] = {
    reconciler.RESOURCE_TYPE: reconciler,
    user_group.RESOURCE_TYPE: user_group,
    user_group_membership.RESOURCE_TYPE: user_group_membership,
    user_group_association.RESOURCE_TYPE: user_group_association,
}

DATA_SOURCES: dict[str, Callable[..., dict]] = {
    user_group.RESOURCE_TYPE: user_group.read_data_source,
    application.DATA_SOURCE_TYPE: application.read_data_source,
    user.DATA_SOURCE_TYPE: user.read_data_source,
}


class ProviderSettings(BaseModel):
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    org_id: Optional[str] = None


class LifecycleRequest(BaseModel):
    type: str
    provider: ProviderSettings = ProviderSettings()
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class CreateRequest(LifecycleRequest):
    operation: Literal["create"]
    args: dict[str, Any]


class ReadRequest(LifecycleRequest):
    operation: Literal["read"]
    state: dict[str, Any]


class UpdateRequest(LifecycleRequest):
    operation: Literal["update"]
    state: dict[str, Any]
    args: dict[str, Any]


class DeleteRequest(LifecycleRequest):
    operation: Literal["delete"]
    state: dict[str, Any]


class ImportRequest(LifecycleRequest):
    operation: Literal["import"]
    import_id: str


class DataSourceReadRequest(LifecycleRequest):
    operation: Literal["read_data_source"]
    args: dict[str, Any]


Request = RootModel[
    Union[
        CreateRequest,
        ReadRequest,
        UpdateRequest,
        DeleteRequest,
        ImportRequest,
        DataSourceReadRequest,
    ]
]


class Response(BaseModel):
    success: bool
    state: Optional[dict[str, Any]] = None
    error: Optional[str] = None


def _resource(resource_type: str, operation: str) -> Callable:
    module = RESOURCES.get(resource_type)
    if module is None:
        raise errors.ConfigurationError(f"unknown resource type {resource_type!r}")
    handler = getattr(module, "import_state" if operation == "import" else operation, None)
    if handler is None:
        raise errors.ConfigurationError(f"{resource_type} does not support {operation}")
    return handler


@errors.handle_errors
def dispatch(
    request: LifecycleRequest,
    client: jumpcloud.JumpCloudClient,
    cfg: config.Config,
    cancel_event: threading.Event,
) -> Optional[dict]:
    match request:
        case CreateRequest():
            return _resource(request.type, "create")(client, cfg, request.args, cancel_event)
        case ReadRequest():
            return _resource(request.type, "read")(client, cfg, request.state, cancel_event)
        case UpdateRequest():
            return _resource(request.type, "update")(client, cfg, request.state, request.args, cancel_event)
        case DeleteRequest():
            _resource(request.type, "delete")(client, cfg, request.state, cancel_event)
            return None
        case ImportRequest():
            return _resource(request.type, "import")(client, cfg, request.import_id, cancel_event)
        case DataSourceReadRequest():
            read_data_source = DATA_SOURCES.get(request.type)
            if read_data_source is None:
                raise errors.ConfigurationError(f"unknown data source type {request.type!r}")
            return read_data_source(client, cfg, request.args, cancel_event)
    raise errors.ConfigurationError(f"unsupported request {request!r}")


def _failure(message: str, state: Optional[dict] = None) -> dict:
    return Response(success=False, state=state, error=message).to_dict()


def handle(event: dict, client: Optional[jumpcloud.JumpCloudClient] = None) -> dict:
    """Run one lifecycle request.

    When `timeout_seconds` is set, a timer sets the cancellation event so that in-flight workers stop taking new
    items, sleeps are interrupted, and the call fails with Cancelled instead of running on.
    """
    try:
        request = Request.model_validate(event).root
    except ValidationError as e:
        logger.warning("Got unexpected request", extra={"event": event, "exception": str(e)})
        return _failure(f"invalid request: {e}")

    try:
        cfg = config.load_config(request.provider.to_dict())
    except ValidationError as e:
        logger.error("Invalid provider configuration", extra={"exception": str(e)})
        return _failure(f"invalid provider configuration: {e}")

    logger.setLevel(cfg.log_level)
    logger.info(f"Handling {request.operation} {request.type}", extra={"operation": request.operation, "type": request.type})

    client = client or jumpcloud.JumpCloudClient(cfg)
    cancel_event = threading.Event()
    timer = None
    if request.timeout_seconds:
        timer = threading.Timer(request.timeout_seconds, cancel_event.set)
        timer.daemon = True
        timer.start()

    try:
        new_state = dispatch(request, client, cfg, cancel_event)
    except ValidationError as e:
        return _failure(f"invalid arguments: {e}")
    except errors.JumpCloudError as e:
        return _failure(str(e), e.state)
    except Exception as e:  # noqa: BLE001
        return _failure(f"unexpected error: {e}")
    finally:
        if timer is not None:
            timer.cancel()

    return Response(success=True, state=new_state).to_dict()
