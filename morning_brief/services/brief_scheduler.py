"""
Daily Brief Scheduler.

Runs once a day at a configurable hour (default 7 AM UTC) to generate the
morning brief for every user with at least one active integration.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import get_brief_settings
from .brief_aggregator import BriefAggregator

logger = logging.getLogger(__name__)


class BriefScheduler:
    """
    Schedules daily brief generation for all connected users.
    """

    def __init__(self, aggregator: BriefAggregator, hour: Optional[int] = None):
        self.aggregator = aggregator
        self.hour = get_brief_settings().daily_brief_hour if hour is None else hour
        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self.is_running = False

    async def initialize(self):
        """Schedule the daily job and start the scheduler."""
        try:
            self.scheduler.add_job(
                self.run_daily_briefs,
                CronTrigger(
                    hour=self.hour,
                    minute=0,
                    timezone='UTC'
                ),
                id='daily_morning_brief',
                name='Daily Morning Brief',
                replace_existing=True,
            )

            self.scheduler.start()
            self.is_running = True

            logger.info(f"BriefScheduler initialized. Scheduled for {self.hour}:00 UTC daily.")

        except Exception as e:
            logger.error(f"Failed to initialize BriefScheduler: {e}")
            raise

    async def shutdown(self):
        """Shutdown the scheduler."""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("BriefScheduler shutdown complete")

    async def run_daily_briefs(self) -> Dict[str, Any]:
        """
        Generate briefs for every user with an active integration.

        This is called by the scheduler at the configured time.
        """
        start_time = datetime.utcnow()
        logger.info(f"Starting daily brief run at {start_time}")

        user_ids = await self.aggregator.integrations.list_active_user_ids()
        total_items = 0
        errors = 0

        for user_id in user_ids:
            try:
                items = await self.aggregator.generate(user_id)
                total_items += len(items)
            except Exception as e:
                logger.error(f"Failed to generate brief for user {user_id}: {e}")
                errors += 1

        duration = (datetime.utcnow() - start_time).total_seconds()
        logger.info(
            f"Daily brief run complete: "
            f"{len(user_ids)} users, {total_items} items, "
            f"{errors} errors, {duration:.2f}s"
        )

        return {
            "users_processed": len(user_ids),
            "items": total_items,
            "errors": errors,
            "duration_seconds": duration,
        }
