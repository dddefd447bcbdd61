"""
habitchallenge.worker.__main__ — Entry point for ``python -m habitchallenge.worker``
====================================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (timezone, job times).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Seed demo users if enabled.
5. Build the services against a system clock in the configured timezone.
6. Run the four daily cron jobs (blocking — runs the asyncio event loop).

Run with::

    python -m habitchallenge.worker
"""

from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

from habitchallenge.config import load_config
from habitchallenge.database.engine import create_db_engine, init_db
from habitchallenge.database.seed import seed_demo_users
from habitchallenge.engine.clock import SystemClock
from habitchallenge.services.notification_service import NotificationService
from habitchallenge.services.scheduler_service import SchedulerService
from habitchallenge.worker.scheduler import JobScheduler, build_jobs

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("habitchallenge")


def main() -> None:
    """Bootstrap and run the scheduler worker."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — %s (%s)", cfg.app_name, cfg.timezone)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Development users (idempotent).
    if cfg.seed_demo_data:
        seed_demo_users(engine)

    # 5. Services.
    clock = SystemClock(cfg.timezone)
    notifier = NotificationService(engine, clock)
    scheduler = JobScheduler(
        build_jobs(SchedulerService(engine, notifier, clock), cfg.schedule), cfg.timezone
    )

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting scheduler worker…")
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
