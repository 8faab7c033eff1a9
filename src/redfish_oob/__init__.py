"""Redfish out-of-band management client for bare-metal provisioning."""

__version__ = "0.1.0"

from .client import RedfishClient, new_client, remote_direct
from .errors import (
    RedfishError,
    MissingConfigurationError,
    RedfishClientError,
    OperationRetriesExceededError,
    OperationCancelledError,
    screen_redfish_error,
)
from .power import PowerState

__all__ = [
    "RedfishClient",
    "new_client",
    "remote_direct",
    "RedfishError",
    "MissingConfigurationError",
    "RedfishClientError",
    "OperationRetriesExceededError",
    "OperationCancelledError",
    "screen_redfish_error",
    "PowerState",
]
