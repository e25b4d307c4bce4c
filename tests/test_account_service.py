"""Tests for account registration, login and dashboard edits"""

import pytest

from greenrelay.exceptions import (
    AccountExistsError,
    AccountNotFoundError,
    RelayNotFoundError,
    ScheduleNotFoundError,
    ValidationError,
)
from greenrelay.services.account_service import validate_window


class TestRegistration:

    def test_first_registration_creates_account(self, accounts):
        account, created = accounts.reconcile_registration("alice", "secret", "dev-1")

        assert created is True
        assert account.device_id == "dev-1"
        assert account.dashboard.relays == {}
        assert accounts.users.count() == 1

    def test_repeated_registration_keeps_one_account(self, accounts, hasher):
        accounts.reconcile_registration("alice", "first", "dev-1")
        account, created = accounts.reconcile_registration("alice", "second", "dev-1")

        assert created is False
        assert accounts.users.count() == 1
        stored = accounts.find_by_device("dev-1")
        assert hasher.verify("second", stored.password_hash)
        assert not hasher.verify("first", stored.password_hash)

    def test_password_is_never_stored_in_plaintext(self, accounts):
        accounts.reconcile_registration("alice", "secret", "dev-1")
        doc = accounts.users.find_one({"deviceId": "dev-1"})
        assert doc["password"] != "secret"
        assert doc["password"].startswith("$2")

    def test_reregistration_preserves_dashboard(self, accounts):
        accounts.reconcile_registration("alice", "first", "dev-1")
        accounts.upsert_relay("dev-1", 0, name="Fan")
        accounts.add_schedule("dev-1", 0, [1], "08:00", "09:00")

        accounts.reconcile_registration("alice", "second", "dev-1")

        relay = accounts.get_account("dev-1").dashboard.get_relay(0)
        assert relay.name == "Fan"
        assert len(relay.schedules) == 1

    def test_match_on_username_updates_that_account(self, accounts, hasher):
        accounts.reconcile_registration("alice", "first", "dev-1")
        accounts.reconcile_registration("ALICE", "second", "dev-2")

        assert accounts.users.count() == 1
        assert accounts.find_by_device("dev-2") is None
        assert hasher.verify("second", accounts.find_by_device("dev-1").password_hash)

    def test_manual_register_refuses_duplicates(self, accounts):
        accounts.register("alice", "pw", "dev-1")

        with pytest.raises(AccountExistsError):
            accounts.register("Alice", "pw", "dev-2")
        with pytest.raises(AccountExistsError):
            accounts.register("bob", "pw", "dev-1")

    def test_manual_register_requires_all_fields(self, accounts):
        with pytest.raises(ValidationError):
            accounts.register("alice", "", "dev-1")


class TestAuthentication:

    def test_username_match_is_case_insensitive(self, accounts):
        accounts.register("Alice", "pw", "dev-1")

        account = accounts.authenticate("alice", "pw")

        assert account is not None
        assert account.username == "Alice"

    def test_wrong_password_is_rejected(self, accounts):
        accounts.register("alice", "pw", "dev-1")
        assert accounts.authenticate("alice", "nope") is None

    def test_unknown_user_is_rejected(self, accounts):
        assert accounts.authenticate("ghost", "pw") is None


class TestRelays:

    def test_sequential_writes_to_same_index_leave_one_relay(self, accounts):
        accounts.register("alice", "pw", "dev-1")

        accounts.upsert_relay("dev-1", 2, name="Pump")
        accounts.upsert_relay("dev-1", 2, name="Main pump", image="pump.png")

        relays = accounts.get_account("dev-1").dashboard.relay_list()
        assert [r.index for r in relays] == [2]
        assert relays[0].name == "Main pump"
        assert relays[0].image == "pump.png"

    def test_unset_fields_are_left_alone(self, accounts):
        accounts.register("alice", "pw", "dev-1")
        accounts.upsert_relay("dev-1", 0, name="Light", image="bulb.png")

        accounts.upsert_relay("dev-1", 0, enabled=False)

        relay = accounts.get_account("dev-1").dashboard.get_relay(0)
        assert relay.name == "Light"
        assert relay.image == "bulb.png"
        assert relay.enabled is False

    def test_new_relay_defaults_to_enabled(self, accounts):
        accounts.register("alice", "pw", "dev-1")
        accounts.upsert_relay("dev-1", 4)
        assert accounts.get_account("dev-1").dashboard.get_relay(4).enabled is True

    def test_relays_listed_by_index(self, accounts):
        accounts.register("alice", "pw", "dev-1")
        for index in (3, 0, 1):
            accounts.upsert_relay("dev-1", index)

        view = accounts.get_account("dev-1").dashboard.to_view()
        assert [r["index"] for r in view["relays"]] == [0, 1, 3]

    def test_unknown_device(self, accounts):
        with pytest.raises(AccountNotFoundError):
            accounts.upsert_relay("missing", 0, name="x")

    @pytest.mark.parametrize("index", [-1, "1", True, None])
    def test_bad_index(self, accounts, index):
        accounts.register("alice", "pw", "dev-1")
        with pytest.raises(ValidationError):
            accounts.upsert_relay("dev-1", index)


class TestSchedules:

    @pytest.fixture
    def relay(self, accounts):
        accounts.register("alice", "pw", "dev-1")
        accounts.upsert_relay("dev-1", 0, name="Pump")
        return 0

    def test_add_schedule_appends(self, accounts, relay):
        accounts.add_schedule("dev-1", relay, [1, 3], "06:00", "06:30")
        schedules = accounts.add_schedule("dev-1", relay, [5], "18:00", "18:15", enabled=False)

        assert [s.start_time for s in schedules] == ["06:00", "18:00"]
        assert schedules[1].enabled is False
        stored = accounts.get_account("dev-1").dashboard.get_relay(relay).schedules
        assert [s.id for s in stored] == [s.id for s in schedules]

    def test_delete_by_position_shifts_later_entries(self, accounts, relay):
        for start in ("06:00", "12:00", "18:00"):
            accounts.add_schedule("dev-1", relay, [1], start, start[:3] + "30")

        remaining = accounts.delete_schedule_at("dev-1", relay, 1)

        assert [s.start_time for s in remaining] == ["06:00", "18:00"]
        remaining = accounts.delete_schedule_at("dev-1", relay, 1)
        assert [s.start_time for s in remaining] == ["06:00"]

    def test_delete_by_position_out_of_range(self, accounts, relay):
        accounts.add_schedule("dev-1", relay, [1], "06:00", "06:30")
        with pytest.raises(ScheduleNotFoundError):
            accounts.delete_schedule_at("dev-1", relay, 1)

    def test_delete_by_id(self, accounts, relay):
        first = accounts.add_schedule("dev-1", relay, [1], "06:00", "06:30")[0]
        accounts.add_schedule("dev-1", relay, [2], "07:00", "07:30")

        remaining = accounts.delete_schedule("dev-1", relay, first.id)

        assert [s.start_time for s in remaining] == ["07:00"]
        with pytest.raises(ScheduleNotFoundError):
            accounts.delete_schedule("dev-1", relay, first.id)

    def test_schedule_on_missing_relay(self, accounts, relay):
        with pytest.raises(RelayNotFoundError):
            accounts.add_schedule("dev-1", 7, [1], "06:00", "06:30")

    def test_schedules_survive_reload(self, accounts, relay):
        accounts.add_schedule("dev-1", relay, [0, 6], "22:00", "23:00")
        schedule = accounts.list_accounts()[0].dashboard.get_relay(relay).schedules[0]
        assert schedule.days == [0, 6]
        assert (schedule.start_time, schedule.end_time) == ("22:00", "23:00")


class TestValidateWindow:

    def test_duplicate_days_are_collapsed(self):
        assert validate_window([1, 1, 3], "08:00", "09:00") == [1, 3]

    @pytest.mark.parametrize("days", [[], None, [7], [-1], ["1"], [True]])
    def test_bad_days(self, days):
        with pytest.raises(ValidationError):
            validate_window(days, "08:00", "09:00")

    @pytest.mark.parametrize("start,end", [("8:00", "09:00"), ("08:00", "24:00"), ("08:60", "09:00"), (None, "09:00")])
    def test_bad_times(self, start, end):
        with pytest.raises(ValidationError):
            validate_window([1], start, end)
