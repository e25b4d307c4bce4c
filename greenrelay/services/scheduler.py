"""
Relay scheduler - once-per-minute evaluation of relay time windows.

Each tick reads every account, and for every enabled schedule on an enabled
relay whose day set contains today and whose window contains the current
"HH:MM" (inclusive, compared as strings in the installation timezone), emits
an "on" command. Nothing is remembered between ticks: an active window
re-asserts "on" every minute, and no "off" is sent when a window closes.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from .. import config
from ..models import Schedule, UserAccount

logger = logging.getLogger(__name__)

_BOUNDARY_MARGIN_SECONDS = 0.1


def weekday_number(moment: datetime) -> int:
    """0=Sunday .. 6=Saturday"""
    return moment.isoweekday() % 7


def clock_time(moment: datetime) -> str:
    """Zero-padded 24h "HH:MM" """
    return moment.strftime("%H:%M")


def is_in_window(schedule: Schedule, weekday: int, current_time: str) -> bool:
    """Day AND time match. Windows are not allowed to cross midnight."""
    if weekday not in schedule.days:
        return False
    return schedule.start_time <= current_time <= schedule.end_time


def calculate_next_run(schedule: Schedule, now: datetime) -> Optional[dict]:
    """
    Next start of a schedule relative to now.

    Today counts only while the current time is still before the start time;
    otherwise the next matching weekday within the coming week is used, which
    for a single-day schedule already started today is 7 days out.

    Returns:
        {"date": "YYYY-MM-DD", "time": startTime, "daysFromNow": n} or None
        when the schedule has no days.
    """
    if not schedule.days:
        return None

    weekday = weekday_number(now)
    if weekday in schedule.days and clock_time(now) < schedule.start_time:
        days_from_now = 0
    else:
        days_from_now = next(i for i in range(1, 8) if (weekday + i) % 7 in schedule.days)

    next_date = (now + timedelta(days=days_from_now)).date()
    return {
        "date": next_date.isoformat(),
        "time": schedule.start_time,
        "daysFromNow": days_from_now,
    }


@dataclass
class TickResult:
    """Outcome of one evaluation pass"""
    weekday: int
    current_time: str
    accounts: int = 0
    checks: int = 0
    activations: int = 0


class RelayScheduler:
    """Evaluates every stored schedule once per minute and emits "on" commands"""

    def __init__(self, account_service, command_emitter, timezone: str = None, interval_seconds: int = None):
        self.accounts = account_service
        self.emitter = command_emitter
        self.timezone = ZoneInfo(timezone or config.SCHEDULER_TIMEZONE)
        self.interval_seconds = interval_seconds or config.SCHEDULER_INTERVAL_SECONDS
        self.running = False
        logger.info(f"Relay scheduler initialized (timezone: {self.timezone.key}, every {self.interval_seconds}s)")

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def evaluate(self, accounts: Iterable[UserAccount], now: datetime) -> TickResult:
        """Run one pass over the given accounts at the given local time"""
        result = TickResult(weekday=weekday_number(now), current_time=clock_time(now))
        logger.debug(f"⏰ Schedule Check - Time: {result.current_time}, Day: {result.weekday}")

        for account in accounts:
            result.accounts += 1
            for relay in account.dashboard.relay_list():
                if not relay.enabled:
                    logger.debug(f"   ⏭️  Relay {relay.index} disabled, skipping")
                    continue

                for schedule in relay.schedules:
                    result.checks += 1
                    if not schedule.enabled:
                        continue

                    if is_in_window(schedule, result.weekday, result.current_time):
                        self.emitter.emit(account.device_id, relay.index, "on")
                        result.activations += 1
                        logger.info(f"      ✅ ACTIVATED: Device {account.device_id}, Relay {relay.index} "
                                    f"({schedule.start_time}-{schedule.end_time})")

        logger.info(f"📊 Schedule Check Complete at {result.current_time}: "
                    f"{result.checks} checks, {result.activations} activations")
        return result

    async def run_tick(self, now: datetime = None) -> Optional[TickResult]:
        """One tick. Errors are logged and the tick abandoned."""
        now = now or self.now()
        try:
            loop = asyncio.get_running_loop()
            accounts = await loop.run_in_executor(None, self.accounts.list_accounts)
            return self.evaluate(accounts, now)
        except Exception as e:
            logger.error(f"❌ Scheduler error: {e}", exc_info=True)
            return None

    def _seconds_until_next_tick(self) -> float:
        # Land just past the boundary so an early timer wakeup still reads the new minute
        return self.interval_seconds - (time.time() % self.interval_seconds) + _BOUNDARY_MARGIN_SECONDS

    async def run(self):
        """Tick on every interval boundary until stopped"""
        logger.info("Starting relay scheduler loop")
        self.running = True

        while self.running:
            await asyncio.sleep(self._seconds_until_next_tick())
            if not self.running:
                break
            await self.run_tick()

    def stop(self):
        self.running = False
        logger.info("Relay scheduler stopped")
