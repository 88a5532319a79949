"""Maintenance runner for the pharmacy domain.

Runs the background jobs (cart sweep, revenue safety net, low-stock report,
history pruning) on their schedules, or a single job once. It works on the same
database as the API (DATABASE_URL), so the sweep sees the carts shoppers left.

Usage:
    python src/server.py                       # Run every job on its schedule
    python src/server.py --job sweep_carts     # Schedule only the cart sweep
    python src/server.py --job low_stock --once
"""

import argparse
import asyncio

from pharmacy.domain import pharmacy
from pharmacy.maintenance.scheduler import JOBS_BY_NAME, run_job, run_jobs


def main():
    parser = argparse.ArgumentParser(description="Pharmacy maintenance runner")
    parser.add_argument(
        "--job",
        choices=sorted(JOBS_BY_NAME),
        help="Run a single job (default: run all)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the selected job(s) once and exit",
    )
    args = parser.parse_args()

    pharmacy.init()
    jobs = [JOBS_BY_NAME[args.job]] if args.job else list(JOBS_BY_NAME.values())

    if args.once:
        for job in jobs:
            run_job(pharmacy, job)
        return

    asyncio.run(run_jobs(pharmacy, jobs))


if __name__ == "__main__":
    main()
