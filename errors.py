"""Exception hierarchy for the game asset MCP server"""

from typing import Any, Optional

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST

# Not a reserved JSON-RPC code; clients only need it to be stable.
RATE_LIMITED = -32029


class GameAssetError(Exception):
    """Base exception for all server errors."""

    error_code = INTERNAL_ERROR


class ConfigurationError(GameAssetError):
    """Missing or out-of-range configuration value."""


class DetectionFailure(GameAssetError):
    """The configured Space could not be classified into a backend variant."""


class ValidationError(GameAssetError):
    """Bad tool input (empty prompt, wrong type)."""

    error_code = INVALID_PARAMS


class RemoteCallError(GameAssetError):
    """A call to a remote Space or inference endpoint failed."""


class TransientRemoteError(RemoteCallError):
    """Network or server-side failure worth retrying with backoff."""


class QuotaExceededError(RemoteCallError):
    """GPU quota exhausted; the backend told us how long to wait."""

    def __init__(self, message: str, wait_seconds: float):
        super().__init__(message)
        self.wait_seconds = wait_seconds


class PersistenceError(GameAssetError):
    """An asset could not be written inside the store root."""

    def __init__(self, message: str, payload_snapshot: Optional[str] = None):
        super().__init__(message)
        self.payload_snapshot = payload_snapshot


class UnsupportedBackendError(GameAssetError):
    """No pipeline is registered for the detected backend variant."""


class UnknownOperationError(GameAssetError, KeyError):
    """Operation id was never started on this tracker."""

    error_code = INVALID_PARAMS

    def __str__(self) -> str:
        return Exception.__str__(self)


class RateLimitExceeded(GameAssetError):
    """Client exceeded its request quota for the current window."""

    error_code = RATE_LIMITED

    def __init__(self, client_key: str, retry_after: float):
        super().__init__(
            f"Too many requests from '{client_key}'; retry in {retry_after:.0f}s"
        )
        self.client_key = client_key
        self.retry_after = retry_after


class AssetNotFoundError(GameAssetError):
    """Resource URI does not name a stored asset."""

    error_code = INVALID_REQUEST


def error_code_for(exc: BaseException) -> int:
    """Map an exception to the JSON-RPC error code reported to the caller."""
    if isinstance(exc, GameAssetError):
        return exc.error_code
    return INTERNAL_ERROR


def describe_error(exc: BaseException) -> dict[str, Any]:
    return {"error": str(exc) or type(exc).__name__, "error_code": error_code_for(exc)}
