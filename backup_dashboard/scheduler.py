"""Unattended backup scheduling.

A TriggerSource decides when the next backup is due; BackupScheduler sleeps
until then and starts a backup with no progress observer. Scheduled runs
only show up in the audit log (plus escalation when they fail).
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Set

from croniter import croniter

from ._utils import logger
from .audit import AuditLog
from .backup import BackupManager
from .schemas import OperationResult


class TriggerSource(ABC):
    """Source of recurring fire times."""

    @abstractmethod
    def next_fire(self, after: datetime) -> datetime:
        """First fire time strictly after ``after``."""

    @property
    @abstractmethod
    def description(self) -> str:
        ...


class CronTrigger(TriggerSource):
    """Fire times from a cron expression, evaluated in local time."""

    def __init__(self, expression: str):
        if not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression}")
        self.expression = expression

    def next_fire(self, after: datetime) -> datetime:
        return croniter(self.expression, after).get_next(datetime)

    @property
    def description(self) -> str:
        return f"cron expression: {self.expression}"


class BackupScheduler:
    """Run backups whenever the trigger fires.

    Each fire launches its own task, so a slow backup never delays the next
    tick; overlapping runs are serialized by the manager's database lock.
    """

    def __init__(self, manager: BackupManager, trigger: TriggerSource, audit: AuditLog):
        self.manager = manager
        self.trigger = trigger
        self.audit = audit

        # Scheduler state
        self.running = False
        self.scheduler_task: Optional[asyncio.Task] = None
        self._runs: Set[asyncio.Task] = set()
        self._last_fire: Optional[datetime] = None

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self.running:
            return

        self.running = True
        self.scheduler_task = asyncio.create_task(self._run_scheduler())
        self.audit.record(f"Auto-backup scheduled with {self.trigger.description}")

    async def stop(self) -> None:
        """Stop scheduling. Backups already running are allowed to finish."""
        if not self.running:
            return

        self.running = False
        if self.scheduler_task:
            self.scheduler_task.cancel()
            try:
                await self.scheduler_task
            except asyncio.CancelledError:
                pass

        if self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

        logger.info("Backup scheduler stopped")

    def _seconds_until_next_fire(self) -> float:
        now = datetime.now().astimezone()
        after = max(now, self._last_fire) if self._last_fire else now
        next_fire = self.trigger.next_fire(after)
        self._last_fire = next_fire
        return max((next_fire - now).total_seconds(), 0.0)

    async def _run_scheduler(self) -> None:
        """Main scheduler loop."""
        while self.running:
            try:
                await asyncio.sleep(self._seconds_until_next_fire())
                self.trigger_backup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}")
                await asyncio.sleep(5)

    def trigger_backup(self) -> asyncio.Task:
        """Start one scheduled backup in the background."""
        task = asyncio.create_task(self._scheduled_backup())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _scheduled_backup(self) -> OperationResult:
        self.audit.record("Running scheduled auto-backup...")
        result = await self.manager.create_backup(observer=None)
        if result.success:
            self.audit.record("Auto-backup completed")
        else:
            self.audit.record("Auto-backup failed")
        return result
