"""Reminder extraction and scheduling.

Phrases like "remind me every 2 hours" become reminder records; the
scheduler turns active records into asyncio timers that feed a proactive
prompt through the normal send path.
"""

import asyncio
import re
from datetime import datetime, timedelta

import structlog

from frontend.lifecycle import CredentialStatus
from frontend.models import Reminder

logger = structlog.get_logger(__name__)

_UNIT_MS = {
    "minute": 60 * 1000,
    "hour": 60 * 60 * 1000,
    "day": 24 * 60 * 60 * 1000,
}

_UNITS = r"(minutes|minute|hours|hour|days|day)"
_INTERVAL = re.compile(rf"remind me every (\d+) {_UNITS}", re.IGNORECASE)
_TIMEOUT = re.compile(rf"remind me in (\d+) {_UNITS}", re.IGNORECASE)
_SCHEDULED = re.compile(r"remind me at (\d{1,2})(?::(\d{2}))?\s?(am|pm)?", re.IGNORECASE)


def _duration_ms(amount: str, unit: str) -> int:
    return int(amount) * _UNIT_MS[unit.lower().rstrip("s")]


def parse_reminder_patterns(text: str, now: datetime | None = None) -> list[dict]:
    """Find reminder requests in a user message.

    Returns:
        Records with keys type, value, message, context. ``value`` is a
        duration in ms, or an epoch-ms target for scheduled reminders.
    """
    reminders = []

    match = _INTERVAL.search(text)
    if match:
        amount, unit = match.groups()
        reminders.append({
            "type": "interval",
            "value": _duration_ms(amount, unit),
            "message": f"Remind me every {amount} {unit}",
            "context": text,
        })

    match = _TIMEOUT.search(text)
    if match:
        amount, unit = match.groups()
        reminders.append({
            "type": "timeout",
            "value": _duration_ms(amount, unit),
            "message": f"Remind me in {amount} {unit}",
            "context": text,
        })

    match = _SCHEDULED.search(text)
    if match:
        hour, minute, meridiem = int(match.group(1)), int(match.group(2) or 0), match.group(3)
        if meridiem:
            meridiem = meridiem.lower()
            if meridiem == "pm" and hour < 12:
                hour += 12
            elif meridiem == "am" and hour == 12:
                hour = 0

        if hour <= 23 and minute <= 59:
            now = now or datetime.now()
            target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
            if target <= now:
                target += timedelta(days=1)
            reminders.append({
                "type": "scheduled",
                "value": int(target.timestamp() * 1000),
                "message": f"Remind me at {match.group(0)[len('remind me at '):].strip()}",
                "context": text,
            })

    return reminders


def reminder_prompt(reminder: Reminder) -> str:
    return f"⏰ Reminder: {reminder.message}. Please provide a short, helpful follow-up."


class ReminderScheduler:
    """Keeps one asyncio task per active reminder in the store.

    Must be started from inside a running event loop. Fired reminders go
    through ``controller.send_message`` and only while the credential is
    valid.
    """

    def __init__(self, store, controller):
        self.store = store
        self.controller = controller
        self._tasks: dict[str, asyncio.Task] = {}
        self._unsubscribe = None

    def start(self) -> None:
        self._unsubscribe = self.store.subscribe(lambda _store: self.sync())
        self.sync()

    def stop(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._tasks.values():
            if task is not asyncio.current_task():
                task.cancel()
        self._tasks.clear()

    @property
    def scheduled_ids(self) -> set[str]:
        return {rid for rid, task in self._tasks.items() if not task.done()}

    def sync(self) -> None:
        """Reconcile running timers with the store's active reminders."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return

        active = {r.id: r for r in self.store.reminders if r.is_active}
        current = asyncio.current_task()

        for reminder_id, task in list(self._tasks.items()):
            if task.done() or reminder_id not in active:
                if not task.done() and task is not current:
                    task.cancel()
                del self._tasks[reminder_id]

        for reminder_id, reminder in active.items():
            if reminder_id not in self._tasks:
                self._tasks[reminder_id] = asyncio.create_task(self._run(reminder))

    async def _run(self, reminder: Reminder) -> None:
        if reminder.type == "interval":
            while True:
                await asyncio.sleep(reminder.value / 1000)
                await self._trigger(reminder)

        if reminder.type == "timeout":
            delay_ms = reminder.value
        else:
            delay_ms = reminder.value - int(datetime.now().timestamp() * 1000)
            if delay_ms <= 0:
                return

        await asyncio.sleep(delay_ms / 1000)
        await self._trigger(reminder)
        self.store.update_reminder(reminder.id, is_active=False)

    async def _trigger(self, reminder: Reminder) -> None:
        if self.store.cookie_status != CredentialStatus.VALID:
            logger.info("reminder.skipped", reminder_id=reminder.id,
                        status=self.store.cookie_status.value if self.store.cookie_status else None)
            return

        logger.info("reminder.fired", reminder_id=reminder.id, type=reminder.type)
        try:
            await self.controller.send_message(reminder_prompt(reminder), origin="reminder", parse_reminders=False)
        except Exception as e:
            logger.error("reminder.send_failed", reminder_id=reminder.id, error=str(e))
