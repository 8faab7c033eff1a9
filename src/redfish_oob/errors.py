"""
Redfish Error Taxonomy

Domain errors raised by the out-of-band client and the screen that turns
transport/protocol failures into them.
"""

from contextlib import contextmanager
from typing import Any, Optional

import requests


class RedfishError(Exception):
    """Base exception for Redfish out-of-band operations"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class MissingConfigurationError(RedfishError):
    """Raised when a required input (URL, system ID) is absent"""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"missing configuration: {what}")


class RedfishClientError(RedfishError):
    """Raised on protocol or transport failures"""


class OperationRetriesExceededError(RedfishError):
    """Raised when a polled state does not converge within the retry budget"""

    def __init__(self, what: str, retries: int):
        self.what = what
        self.retries = retries
        super().__init__(f"operation {what} exceeded retry limit {retries}")


class OperationCancelledError(RedfishError):
    """Raised when a poll is aborted through its cancel event"""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"operation {what} was cancelled")


def _decode_fault_message(body: Any) -> Optional[str]:
    """Pull the human-readable fault text out of a Redfish error body."""
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if not isinstance(error, dict):
        return None

    # Format 1: @Message.ExtendedInfo array
    extended_info = error.get("@Message.ExtendedInfo", [])
    if extended_info and isinstance(extended_info, list):
        messages = [
            info.get("Message", "")
            for info in extended_info
            if isinstance(info, dict) and info.get("Message")
        ]
        if messages:
            return "; ".join(messages)

    # Format 2: direct error object
    return error.get("message") or None


def screen_redfish_error(
    response: Optional[requests.Response],
    error: Optional[BaseException],
) -> Optional[RedfishClientError]:
    """
    Classify a transport response and protocol error into a domain error.

    Args:
        response: HTTP response, if one was received
        error: Error raised by the API surface, or None

    Returns:
        None when there is no error (the status is informational only),
        otherwise a RedfishClientError carrying the HTTP status and the
        decoded fault message
    """
    if error is None:
        return None

    if response is None:
        return RedfishClientError(
            "HTTP request failed. Redfish may be temporarily unavailable. "
            f"Please try again. ({error})"
        )

    status_code = response.status_code
    message = None
    try:
        message = _decode_fault_message(response.json())
    except ValueError:
        # Non-JSON error bodies fall through to the raw error text
        pass

    if not message:
        message = str(error)

    return RedfishClientError(f"{status_code}: {message}", status_code=status_code)


@contextmanager
def screened():
    """
    Re-raise API surface failures inside the block as screened domain errors.

    Example:
        with screened():
            system, _ = api.get_system(node_id)
    """
    try:
        yield
    except requests.RequestException as exc:
        raise screen_redfish_error(exc.response, exc) from exc
