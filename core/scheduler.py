"""
In-process job scheduler.

Every job runs on its own threading.Timer, which re-arms itself after each
run. Timing is either a fixed interval or a wall-clock rule (daily at a
time, monthly on a day) evaluated in the project time zone.
"""

import logging
import threading
from datetime import datetime, time, timedelta

from django.db import close_old_connections
from django.utils import timezone

from . import jobs

logger = logging.getLogger('core.jobs')


def next_daily_run(now, at):
    """Next occurrence of wall-clock time `at` strictly after `now`."""
    candidate = timezone.make_aware(datetime.combine(now.date(), at), now.tzinfo)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_monthly_run(now, day, at):
    """Next occurrence of `day` of the month at `at` strictly after `now`."""
    candidate = timezone.make_aware(
        datetime.combine(now.date().replace(day=day), at), now.tzinfo
    )
    if candidate <= now:
        year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
        candidate = timezone.make_aware(
            datetime.combine(now.date().replace(year=year, month=month, day=day), at), now.tzinfo
        )
    return candidate


class Job:
    """A named callable with either an `interval` or a `next_run(now)` rule."""

    def __init__(self, name, func, interval=None, next_run=None):
        if (interval is None) == (next_run is None):
            raise ValueError('A job needs exactly one of interval or next_run')
        self.name = name
        self.func = func
        self.interval = interval
        self.next_run = next_run

    def delay(self, now):
        if self.interval is not None:
            return self.interval.total_seconds()
        return max((self.next_run(now) - now).total_seconds(), 0)

    def run(self):
        close_old_connections()
        try:
            result = self.func()
            logger.info(f"Job {self.name} finished: {result}")
            return result
        except Exception as e:
            logger.exception(f"Job {self.name} failed: {e}")
        finally:
            close_old_connections()


def default_jobs():
    return [
        Job('cleanup_notifications', jobs.cleanup_notifications, interval=timedelta(days=3)),
        Job('cleanup_reported_orders', jobs.cleanup_reported_orders, interval=timedelta(minutes=5)),
        Job('expire_announcements', jobs.expire_announcements, interval=timedelta(hours=1)),
        Job(
            'generate_commissions',
            jobs.generate_commissions,
            next_run=lambda now: next_daily_run(now, time(0, 5)),
        ),
        Job(
            'finalize_commissions',
            jobs.finalize_commissions,
            next_run=lambda now: next_monthly_run(now, 1, time(0, 1)),
        ),
    ]


class Scheduler:

    def __init__(self, job_list=None):
        self.jobs = job_list if job_list is not None else default_jobs()
        self._timers = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def start(self):
        for job in self.jobs:
            self._arm(job)
        logger.info(f"Scheduler started with {len(self.jobs)} jobs")

    def _arm(self, job):
        with self._lock:
            if self._stopped.is_set():
                return
            delay = job.delay(timezone.localtime())
            timer = threading.Timer(delay, self._fire, args=(job,))
            timer.daemon = True
            self._timers[job.name] = timer
            timer.start()
        logger.debug(f"Job {job.name} scheduled in {delay:.0f}s")

    def _fire(self, job):
        job.run()
        self._arm(job)

    def stop(self):
        with self._lock:
            self._stopped.set()
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
        logger.info("Scheduler stopped")

    def wait(self, timeout=None):
        return self._stopped.wait(timeout)
