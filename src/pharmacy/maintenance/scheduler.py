"""Background job scheduler.

Runs the maintenance jobs at fixed intervals on an asyncio loop. Jobs go
through the same commands and functions the HTTP layer uses; each run happens
inside its own domain context with the job name bound to every log line.

    sweep_carts      every 10 minutes
    record_revenue   every hour
    low_stock        every 6 hours
    prune_history    every week
"""

import asyncio
from collections import namedtuple

import structlog

from pharmacy.cart.reconciliation import sweep
from pharmacy.maintenance.health import low_stock_products
from pharmacy.maintenance.history import PruneStatusHistory
from pharmacy.maintenance.revenue import RecordPendingRevenue
from pharmacy.utils.concurrency import dispatch
from pharmacy.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)

Job = namedtuple("Job", ["name", "interval", "run"])


def _record_revenue():
    return dispatch(RecordPendingRevenue())


def _low_stock():
    return len(low_stock_products())


def _prune_history():
    return dispatch(PruneStatusHistory())


JOBS = [
    Job("sweep_carts", 10 * 60, sweep),
    Job("record_revenue", 60 * 60, _record_revenue),
    Job("low_stock", 6 * 60 * 60, _low_stock),
    Job("prune_history", 7 * 24 * 60 * 60, _prune_history),
]

JOBS_BY_NAME = {job.name: job for job in JOBS}


def run_job(domain, job):
    """Run one job inside a domain context. Failures are logged, not raised."""
    add_context(job=job.name)
    try:
        with domain.domain_context():
            result = job.run()
        logger.info("Job finished", result=result)
        return result
    except Exception as exc:
        logger.exception("Job failed", error=str(exc))
        return None
    finally:
        clear_context()


async def _every(domain, job):
    while True:
        await asyncio.to_thread(run_job, domain, job)
        await asyncio.sleep(job.interval)


async def run_jobs(domain, jobs=None):
    """Run ``jobs`` (default: all) forever at their intervals."""
    jobs = jobs or JOBS
    logger.info("Scheduler started", jobs=[job.name for job in jobs])
    await asyncio.gather(*(_every(domain, job) for job in jobs))
