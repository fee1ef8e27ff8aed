"""Trading Scheduler - APScheduler integration for the trade-check workflow.

This module provides scheduling infrastructure for the bot with:
- Cron schedules for trade checks and price updates (US/Eastern)
- A single worker thread, so queued runs never execute concurrently
- Coalescing of missed and repeated runs
- On-demand runs (e.g. right after a manual trade is entered)
- NYSE holiday awareness
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from congress_rebalancer.utils.exceptions import ConfigurationError
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)

# US/Eastern timezone for market hours
EASTERN_TZ = pytz.timezone("US/Eastern")


class TradingScheduler:
    """APScheduler wrapper for the bot's recurring tasks.

    Example:
        >>> scheduler = TradingScheduler(config)
        >>> scheduler.register_task(
        ...     name="trade_check",
        ...     func=pipeline.run_cycle,
        ...     trigger="cron",
        ...     trigger_args={"day_of_week": "mon-fri", "hour": "9,11,13,15"},
        ... )
        >>> scheduler.start()
    """

    def __init__(self, config: dict):
        """Initialize trading scheduler.

        Args:
            config: Configuration dictionary with scheduler settings
                - timezone: Timezone for scheduling (default: US/Eastern)
                - max_instances: Max concurrent job instances (default: 1)
                - coalesce: Combine missed jobs (default: True)
                - misfire_grace_time: Seconds a late job may still run (default: 300)
                - max_workers: Worker threads (default: 1)
                - skip_holidays: Skip scheduled runs on NYSE holidays (default: True)
        """
        self.config = config
        self.timezone = pytz.timezone(config.get("timezone", "US/Eastern"))
        self.skip_holidays = config.get("skip_holidays", True)

        self.scheduler = BackgroundScheduler(
            timezone=self.timezone,
            executors={"default": ThreadPoolExecutor(config.get("max_workers", 1))},
            job_defaults={
                "coalesce": config.get("coalesce", True),
                "max_instances": config.get("max_instances", 1),
                "misfire_grace_time": config.get("misfire_grace_time", 300),
            },
        )

        self.tasks: Dict[str, dict] = {}

        self.scheduler.add_listener(
            self._on_job_executed, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR
        )

        logger.info("TradingScheduler initialized (timezone: %s)", self.timezone)

    def register_task(
        self,
        name: str,
        func: Callable,
        trigger: str,
        trigger_args: dict,
    ):
        """Register a scheduled task.

        Args:
            name: Unique task identifier
            func: Function to execute
            trigger: Trigger type ('cron' or 'date')
            trigger_args: Arguments for the trigger

        Example:
            >>> scheduler.register_task(
            ...     name="price_update",
            ...     func=pipeline.update_prices,
            ...     trigger="cron",
            ...     trigger_args={"day_of_week": "mon-fri", "hour": "9,16"},
            ... )
        """
        trigger_obj = self._create_trigger(trigger, trigger_args)

        if name in self.tasks:
            logger.warning("Task '%s' already registered, replacing", name)

        self.tasks[name] = {
            "func": func,
            "trigger": trigger,
            "trigger_args": trigger_args,
        }

        job = self.scheduler.add_job(
            func=self._wrap(name, func, scheduled=True),
            trigger=trigger_obj,
            id=name,
            name=name,
            replace_existing=True,
        )

        try:
            next_run = job.next_run_time if hasattr(job, "next_run_time") else "N/A"
        except AttributeError:
            next_run = "N/A"

        logger.info(
            "Registered task '%s' with trigger %s (next run: %s)",
            name,
            trigger,
            next_run,
        )

    def trigger_now(self, name: str, delay_seconds: float = 0):
        """Queue a one-off run of a registered task.

        Repeated requests before the run starts collapse into one.

        Args:
            name: Registered task name
            delay_seconds: Delay before the run

        Raises:
            KeyError: If the task is not registered
        """
        if name not in self.tasks:
            raise KeyError(f"Unknown task: {name}")

        run_date = datetime.now(self.timezone) + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            func=self._wrap(name, self.tasks[name]["func"], scheduled=False),
            trigger=self._create_trigger("date", {"run_date": run_date}),
            id=f"{name}_on_demand",
            name=f"{name} (on demand)",
            replace_existing=True,
        )
        logger.info("Queued on-demand run of '%s' at %s", name, run_date)

    def _create_trigger(self, trigger_type: str, args: dict):
        """Create APScheduler trigger from type and arguments.

        Args:
            trigger_type: 'cron' or 'date'
            args: Trigger-specific arguments

        Returns:
            APScheduler trigger object
        """
        if trigger_type == "cron":
            return CronTrigger(timezone=self.timezone, **args)
        elif trigger_type == "date":
            return DateTrigger(timezone=self.timezone, **args)
        else:
            raise ConfigurationError(f"Unknown trigger type: {trigger_type}")

    def _wrap(self, task_name: str, func: Callable, scheduled: bool) -> Callable:
        """Wrap a task with holiday checks and result logging.

        Args:
            task_name: Name of the task
            func: Function to wrap
            scheduled: False for on-demand runs, which ignore the holiday check

        Returns:
            Wrapped function
        """

        def wrapped():
            if scheduled and self.skip_holidays and not is_trading_day(
                datetime.now(self.timezone)
            ):
                logger.info("Market holiday, skipping task '%s'", task_name)
                return None

            try:
                logger.info("Executing task '%s'", task_name)
                result = func()
                logger.info("Task '%s' completed", task_name)
                return result

            except Exception as e:
                logger.error("Task '%s' failed: %s", task_name, e, exc_info=True)
                raise

        return wrapped

    def _on_job_executed(self, event):
        """Event listener for job execution/errors.

        Args:
            event: APScheduler event object
        """
        if event.exception:
            logger.error(
                "Job '%s' raised exception: %s",
                event.job_id,
                event.exception,
            )
        else:
            logger.debug("Job '%s' executed successfully", event.job_id)

    def start(self):
        """Start the scheduler (non-blocking)."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        logger.info("Scheduler started successfully")

        jobs = self.scheduler.get_jobs()
        logger.info("Scheduled jobs (%d):", len(jobs))
        for job in jobs:
            try:
                next_run = job.next_run_time if hasattr(job, "next_run_time") else "N/A"
            except AttributeError:
                next_run = "N/A"
            logger.info("  - %s: next run at %s", job.id, next_run)

    def stop(self):
        """Stop the scheduler gracefully.

        Waits for running jobs to complete before shutting down.
        """
        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return

        logger.info("Shutting down scheduler...")
        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running


def is_trading_day(dt: Optional[datetime] = None) -> bool:
    """Check if date is a valid NYSE trading day.

    Uses exchange_calendars to check for holidays.

    Args:
        dt: Date to check (default: today)

    Returns:
        True if it's a trading day

    Example:
        >>> if is_trading_day():
        ...     pipeline.run_cycle()
    """
    import exchange_calendars as xcals
    import pandas as pd

    if dt is None:
        dt = datetime.now(EASTERN_TZ)

    nyse = xcals.get_calendar("XNYS")

    return bool(nyse.is_session(pd.Timestamp(dt.date())))
