"""Optimistic concurrency helpers.

Aggregates carry a version that the repository checks on every save: a writer
that loaded an older version fails with ExpectedVersionError instead of
overwriting a concurrent change. The whole load/mutate/save cycle is re-run
against fresh state when that happens.

Inside a command handler every write is buffered in the handler's unit of work
and the version check only fires when that unit of work commits, which is after
the handler has returned. Retrying there is pointless, so commands are retried
as a whole at the point they are dispatched (``dispatch``): the failed attempt
has been rolled back, and the next one starts from a clean unit of work.

Each writer commits at most once per cycle, so a writer that keeps losing is
losing to distinct competitors; the attempt budget is sized well above the
contention a single product sees.
"""

import random
import time

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)

DEFAULT_ATTEMPTS = 30
BACKOFF_CAP = 0.05  # seconds; retries may run on the API's event loop


def run_with_retry(
    func,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_base: float = 0.002,
    backoff_cap: float = BACKOFF_CAP,
):
    """Execute a load/mutate/save cycle, retrying on version conflicts.

    Backoff is exponential with full jitter, capped at ``backoff_cap``.
    """
    for attempt in range(attempts):
        try:
            return func()
        except ExpectedVersionError as exc:
            if attempt >= attempts - 1:
                logger.error("Version conflict persisted, giving up", attempts=attempts, error=str(exc))
                raise
            logger.debug("Version conflict, retrying", attempt=attempt + 1, error=str(exc))
            time.sleep(random.uniform(0, min(backoff_cap, backoff_base * (2**attempt))))


def dispatch(command, **retry_options):
    """Process ``command`` synchronously, re-running it on version conflicts."""
    return run_with_retry(
        lambda: current_domain.process(command, asynchronous=False),
        **retry_options,
    )
