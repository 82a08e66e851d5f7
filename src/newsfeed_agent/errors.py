"""Error taxonomy for everything that goes over the network."""

import math
from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the fetch layer."""

    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVER = "server"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"


TRANSIENT_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.TIMEOUT, ErrorKind.NETWORK})


class ApiError(Exception):
    """Raised when a request cannot produce a usable JSON payload."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self._kind = ErrorKind(kind)
        self._message = message
        self._http_status = http_status
        self._retry_after = retry_after

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def http_status(self) -> int | None:
        return self._http_status

    @property
    def retry_after(self) -> float | None:
        """Seconds the server asked us to wait, if it said so."""
        return self._retry_after

    def __repr__(self) -> str:
        return (
            f"ApiError(kind={self._kind.value!r}, message={self._message!r}, "
            f"http_status={self._http_status!r}, retry_after={self._retry_after!r})"
        )


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    HTTP-date values are not supported and yield None.
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds):
        return None
    return seconds


def classify_response(status: int, headers, body: str = "") -> ApiError:
    """Map a non-2xx HTTP response to an ApiError.

    Args:
        status: HTTP status code.
        headers: Response headers (any mapping with case-insensitive get).
        body: Response text, used as the message when present.
    """
    message = body or f"HTTP {status}"
    if status == 429:
        return ApiError(
            ErrorKind.RATE_LIMIT,
            "Rate limit exceeded",
            http_status=status,
            retry_after=parse_retry_after(headers.get("retry-after")),
        )
    if status >= 500:
        return ApiError(ErrorKind.SERVER, message, http_status=status)
    if status >= 400:
        return ApiError(ErrorKind.BAD_REQUEST, message, http_status=status)
    return ApiError(ErrorKind.UNKNOWN, message, http_status=status)


def is_transient(exc: BaseException) -> bool:
    """True for failures worth retrying: rate limits, timeouts, transport errors."""
    return isinstance(exc, ApiError) and exc.kind in TRANSIENT_KINDS


_COPY = {
    ErrorKind.TIMEOUT: ("Request timed out", "The connection is slow. Please try again."),
    ErrorKind.NETWORK: ("Network error", "Please check your connection and try again."),
    ErrorKind.SERVER: ("Server error", "Please try again in a moment."),
    ErrorKind.BAD_REQUEST: ("Invalid request", "Please try a different action."),
}
_GENERIC = ("An error occurred", "Please try again later.")


def describe_error(err: BaseException | None) -> dict:
    """Turn an error into a short title and message for the user."""
    if not isinstance(err, ApiError):
        title, message = _GENERIC
    elif err.kind is ErrorKind.RATE_LIMIT:
        title = "Rate limit reached"
        if err.retry_after is not None and err.retry_after > 0:
            message = f"Please try again in about {math.ceil(err.retry_after)} seconds."
        else:
            message = "Please wait a moment or reduce the number of data requests."
    else:
        title, message = _COPY.get(err.kind, _GENERIC)
    return {"title": title, "message": message}
