import functools
from typing import Callable, Mapping, Optional, Sequence

import config

logger = config.get_logger(service="errors")


class JumpCloudError(Exception):
    """Base error. `state` holds what was observed remotely when the call failed after mutating something."""

    state: Optional[dict] = None


class ConfigurationError(JumpCloudError):
    ...


class NotFound(JumpCloudError):
    ...


class TransportError(JumpCloudError):
    """Network failure or unexpected answer from the API. Retried with backoff."""


class APIError(TransportError):
    def __init__(self, status_code: int, message: str, endpoint: str) -> None:
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class Cancelled(JumpCloudError):
    ...


class PaginationLimitExceeded(JumpCloudError):
    def __init__(self, endpoint: str, max_pages: int) -> None:
        self.endpoint = endpoint
        self.max_pages = max_pages
        super().__init__(f"{endpoint} returned full pages {max_pages} times in a row, giving up")


class AmbiguousOrMissing(JumpCloudError):
    def __init__(self, kind: str, key: str, reason: str) -> None:
        self.kind = kind
        self.key = key
        self.reason = reason
        super().__init__(f"{kind} {key!r}: {reason}")


class ResolutionFailed(JumpCloudError):
    """One or more lookups failed. Raised only after every item of the batch was attempted."""

    def __init__(self, kind: str, failures: Mapping[str, str]) -> None:
        self.kind = kind
        self.failures = dict(failures)
        details = "\n".join(f"{key}: {message}" for key, message in sorted(self.failures.items()))
        super().__init__(f"errors looking up {kind}s {sorted(self.failures)}:\n{details}")

    @property
    def keys(self) -> list[str]:
        return sorted(self.failures)


class PartialSyncFailure(JumpCloudError):
    """Some membership changes were not applied. Remote state may be partially converged."""

    def __init__(self, failures: Sequence[str]) -> None:
        self.failures = list(failures)
        super().__init__("group synchronization partially failed:\n" + "\n".join(self.failures))


_NOT_FOUND_MARKERS = ("not found", "404")


def is_not_found(e: BaseException) -> bool:
    if isinstance(e, NotFound):
        return True
    if isinstance(e, APIError):
        return e.status_code == 404
    if isinstance(e, JumpCloudError):
        # Messages of our own errors embed request paths, and hex IDs can contain "404".
        return False
    # Errors from outside the client only carry text.
    text = str(e).lower()
    return any(marker in text for marker in _NOT_FOUND_MARKERS)


def handle_errors(fn: Callable) -> Callable:
    """Log any exception escaping a lifecycle handler with the handler name, then re-raise it."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
        try:
            return fn(*args, **kwargs)
        except JumpCloudError as e:
            logger.error(f"{fn.__name__} failed: {e}", extra={"error_type": type(e).__name__})
            raise
        except Exception as e:
            logger.exception(f"{fn.__name__} failed with an unexpected error", extra={"error": str(e)})
            raise

    return wrapper
