"""Bounded convergence polling."""

import logging
import threading
from typing import Callable, Optional, TypeVar

from .errors import OperationCancelledError, OperationRetriesExceededError


logger = logging.getLogger(__name__)

# Default number of state queries issued while waiting for convergence
SYSTEM_ACTION_RETRIES = 30

T = TypeVar("T")


def poll_until(
    query: Callable[[], T],
    predicate: Callable[[T], bool],
    what: str,
    interval: float,
    retries: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> T:
    """
    Query state until a predicate holds or the retry budget runs out.

    The same bound applies to every poll: at most ``retries`` queries are
    issued and there is no wait after the last one.

    Args:
        query: Callable returning the current state
        predicate: Returns True when the state has converged
        what: Operation name used in errors and logs
        interval: Seconds to wait between queries
        retries: Maximum number of queries (default: SYSTEM_ACTION_RETRIES)
        cancel: Event that aborts the wait when set

    Returns:
        The state value that satisfied the predicate

    Raises:
        OperationRetriesExceededError: If the budget is exhausted
        OperationCancelledError: If cancel is set while polling
    """
    if retries is None:
        retries = SYSTEM_ACTION_RETRIES
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")

    if cancel is None:
        cancel = threading.Event()

    for attempt in range(1, retries + 1):
        if cancel.is_set():
            raise OperationCancelledError(what)

        state = query()
        if predicate(state):
            logger.debug(f"{what}: converged after {attempt} attempt(s)")
            return state

        logger.debug(f"{what}: not converged (attempt {attempt}/{retries})")
        if attempt == retries:
            break

        # Event.wait returns True as soon as the event is set
        if cancel.wait(interval):
            raise OperationCancelledError(what)

    raise OperationRetriesExceededError(what, retries)
