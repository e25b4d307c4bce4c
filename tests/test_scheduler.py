"""Tests for the relay scheduler and next-run calculation"""

from datetime import datetime
from unittest.mock import MagicMock, call
from zoneinfo import ZoneInfo

import pytest

from greenrelay.models import Dashboard, RelayConfig, Schedule, UserAccount
from greenrelay.services.scheduler import (
    RelayScheduler,
    calculate_next_run,
    is_in_window,
    weekday_number,
)

CAIRO = ZoneInfo("Africa/Cairo")


def at(day: int, hour: int, minute: int) -> datetime:
    # January 2024: the 1st is a Monday, the 3rd a Wednesday, the 7th a Sunday
    return datetime(2024, 1, day, hour, minute, tzinfo=CAIRO)


def make_account(device_id="dev-1", relays=None):
    return UserAccount(
        username=f"user-{device_id}",
        password_hash="x",
        device_id=device_id,
        dashboard=Dashboard(relays={r.index: r for r in (relays or [])}),
    )


def make_scheduler(emitter, accounts=None):
    return RelayScheduler(accounts or MagicMock(), emitter, timezone="Africa/Cairo")


def test_weekday_numbering_starts_on_sunday():
    assert weekday_number(at(7, 12, 0)) == 0
    assert weekday_number(at(1, 12, 0)) == 1
    assert weekday_number(at(6, 12, 0)) == 6


def test_window_is_inclusive_at_both_ends(emitter, mqtt_client):
    relay = RelayConfig(index=2, schedules=[Schedule(days=[1], start_time="08:00", end_time="08:02")])
    account = make_account(relays=[relay])
    scheduler = make_scheduler(emitter)

    fired = {}
    for minute_of_day in ["07:59", "08:00", "08:01", "08:02", "08:03"]:
        mqtt_client.publish.reset_mock()
        hour, minute = map(int, minute_of_day.split(":"))
        result = scheduler.evaluate([account], at(1, hour, minute))
        fired[minute_of_day] = result.activations

    assert fired == {"07:59": 0, "08:00": 1, "08:01": 1, "08:02": 1, "08:03": 0}


def test_matching_tick_emits_on_command(emitter, mqtt_client):
    relay = RelayConfig(index=3, schedules=[Schedule(days=[1], start_time="08:00", end_time="09:00")])
    scheduler = make_scheduler(emitter)

    scheduler.evaluate([make_account("dev-9", [relay])], at(1, 8, 30))

    mqtt_client.publish.assert_called_once_with(
        "green-tech/relay-control",
        {"deviceId": "dev-9", "relay": 3, "action": "on"},
    )


def test_wrong_day_does_not_fire(emitter, mqtt_client):
    relay = RelayConfig(index=0, schedules=[Schedule(days=[2, 3], start_time="08:00", end_time="09:00")])
    result = make_scheduler(emitter).evaluate([make_account(relays=[relay])], at(1, 8, 30))

    assert result.activations == 0
    mqtt_client.publish.assert_not_called()


def test_disabled_relay_and_schedule_are_skipped(emitter, mqtt_client):
    window = dict(days=[1], start_time="08:00", end_time="09:00")
    disabled_relay = RelayConfig(index=0, enabled=False, schedules=[Schedule(**window)])
    disabled_schedule = RelayConfig(index=1, schedules=[Schedule(enabled=False, **window)])
    active = RelayConfig(index=2, schedules=[Schedule(**window)])

    result = make_scheduler(emitter).evaluate(
        [make_account(relays=[disabled_relay, disabled_schedule, active])], at(1, 8, 15)
    )

    assert result.activations == 1
    assert result.checks == 2  # schedules on the disabled relay are never looked at
    mqtt_client.publish.assert_called_once()
    assert mqtt_client.publish.call_args[0][1]["relay"] == 2


def test_window_end_never_sends_off(emitter, mqtt_client):
    relay = RelayConfig(index=0, schedules=[Schedule(days=[1], start_time="08:00", end_time="08:01")])
    scheduler = make_scheduler(emitter)
    account = make_account(relays=[relay])

    for minute in range(0, 5):
        scheduler.evaluate([account], at(1, 8, minute))

    actions = [c[0][1]["action"] for c in mqtt_client.publish.call_args_list]
    assert actions == ["on", "on"]


def test_each_account_uses_its_own_device(emitter, mqtt_client):
    window = dict(days=[1], start_time="08:00", end_time="09:00")
    accounts = [
        make_account("dev-a", [RelayConfig(index=0, schedules=[Schedule(**window)])]),
        make_account("dev-b", [RelayConfig(index=5, schedules=[Schedule(**window)])]),
    ]

    result = make_scheduler(emitter).evaluate(accounts, at(1, 8, 0))

    assert result.accounts == 2
    assert mqtt_client.publish.call_args_list == [
        call("green-tech/relay-control", {"deviceId": "dev-a", "relay": 0, "action": "on"}),
        call("green-tech/relay-control", {"deviceId": "dev-b", "relay": 5, "action": "on"}),
    ]


@pytest.mark.asyncio
async def test_failed_tick_is_abandoned_and_next_tick_runs(emitter, mqtt_client):
    relay = RelayConfig(index=0, schedules=[Schedule(days=[1], start_time="08:00", end_time="09:00")])
    account_service = MagicMock()
    account_service.list_accounts.side_effect = [RuntimeError("store unavailable"), [make_account(relays=[relay])]]
    scheduler = make_scheduler(emitter, account_service)

    first = await scheduler.run_tick(at(1, 8, 0))
    second = await scheduler.run_tick(at(1, 8, 1))

    assert first is None
    assert second.activations == 1
    mqtt_client.publish.assert_called_once()


@pytest.mark.asyncio
async def test_tick_reads_every_account_from_store(accounts, emitter, mqtt_client):
    accounts.register("alice", "pw", "dev-a")
    accounts.upsert_relay("dev-a", 1, name="Pump")
    accounts.add_schedule("dev-a", 1, [1], "08:00", "08:30")
    accounts.register("bob", "pw", "dev-b")

    result = await RelayScheduler(accounts, emitter, timezone="Africa/Cairo").run_tick(at(1, 8, 10))

    assert result.accounts == 2
    assert result.activations == 1
    mqtt_client.publish.assert_called_once_with(
        "green-tech/relay-control", {"deviceId": "dev-a", "relay": 1, "action": "on"}
    )


def test_is_in_window_compares_fixed_width_strings():
    schedule = Schedule(days=[0], start_time="09:05", end_time="10:00")
    assert not is_in_window(schedule, 0, "09:04")
    assert is_in_window(schedule, 0, "09:05")
    assert is_in_window(schedule, 0, "10:00")
    assert not is_in_window(schedule, 0, "10:01")


class TestCalculateNextRun:

    def test_today_before_start_is_zero_days(self):
        schedule = Schedule(days=[3], start_time="08:00", end_time="09:00")
        now = at(3, 7, 0)  # Wednesday 07:00

        assert calculate_next_run(schedule, now) == {
            "date": "2024-01-03",
            "time": "08:00",
            "daysFromNow": 0,
        }

    def test_single_day_past_start_moves_a_full_week(self):
        schedule = Schedule(days=[3], start_time="08:00", end_time="09:00")
        now = at(3, 9, 30)  # Wednesday 09:30

        assert calculate_next_run(schedule, now) == {
            "date": "2024-01-10",
            "time": "08:00",
            "daysFromNow": 7,
        }

    def test_at_start_time_counts_as_started(self):
        schedule = Schedule(days=[3], start_time="08:00", end_time="09:00")
        assert calculate_next_run(schedule, at(3, 8, 0))["daysFromNow"] == 7

    def test_picks_nearest_following_day(self):
        schedule = Schedule(days=[1, 5], start_time="08:00", end_time="09:00")
        assert calculate_next_run(schedule, at(3, 12, 0))["daysFromNow"] == 2

    def test_wraps_past_saturday(self):
        schedule = Schedule(days=[0], start_time="06:00", end_time="07:00")
        result = calculate_next_run(schedule, datetime(2024, 1, 6, 12, 0, tzinfo=CAIRO))  # Saturday
        assert result["daysFromNow"] == 1
        assert result["date"] == "2024-01-07"

    def test_no_days_has_no_next_run(self):
        assert calculate_next_run(Schedule(days=[], start_time="08:00", end_time="09:00"), at(3, 7, 0)) is None
