"""Account service - user accounts, dashboards and relay schedules"""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Tuple

from .. import config
from ..exceptions import (
    AccountExistsError,
    AccountNotFoundError,
    RelayNotFoundError,
    ScheduleNotFoundError,
    ValidationError,
)
from ..models import RelayConfig, Schedule, UserAccount
from ..storage import DocumentStore, DuplicateKeyError
from .passwords import PasswordHasher

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_window(days, start_time, end_time) -> List[int]:
    """Check schedule fields are well formed; returns the normalized day list.

    Times must be zero-padded "HH:MM" because the scheduler compares them as
    strings. start < end is not enforced here.
    """
    if not isinstance(days, list) or not days:
        raise ValidationError("days must be a non-empty list of weekday numbers (0=Sunday..6=Saturday)")
    normalized = []
    for day in days:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ValidationError(f"Invalid weekday: {day!r}")
        if day not in normalized:
            normalized.append(day)
    for label, value in (("startTime", start_time), ("endTime", end_time)):
        if not isinstance(value, str) or not _TIME_PATTERN.match(value):
            raise ValidationError(f"{label} must be HH:MM, got {value!r}")
    return normalized


class AccountService:
    """Reads and mutates UserAccount documents.

    Every mutation is a single-document read-modify-write; concurrent writers
    to the same account are last-write-wins.
    """

    def __init__(self, store: DocumentStore, hasher: PasswordHasher = None, collection_name: str = None):
        self.hasher = hasher or PasswordHasher()
        self.users = store.collection(
            collection_name or config.USERS_COLLECTION,
            key_field="deviceId",
            unique_fields=("usernameKey", "deviceId"),
        )

    # ============ LOOKUPS ============

    def find_by_device(self, device_id: str) -> Optional[UserAccount]:
        doc = self.users.find_one({"deviceId": device_id})
        return UserAccount.from_document(doc) if doc else None

    def find_by_username(self, username: str) -> Optional[UserAccount]:
        doc = self.users.find_one({"usernameKey": UserAccount.username_key(username)})
        return UserAccount.from_document(doc) if doc else None

    def find_existing(self, username: str, device_id: str) -> Optional[UserAccount]:
        """Account matching the username OR the device id"""
        doc = self.users.find_one({
            "$or": [
                {"usernameKey": UserAccount.username_key(username)},
                {"deviceId": device_id},
            ]
        })
        return UserAccount.from_document(doc) if doc else None

    def get_account(self, device_id: str) -> UserAccount:
        account = self.find_by_device(device_id)
        if account is None:
            raise AccountNotFoundError(device_id)
        return account

    def list_accounts(self) -> List[UserAccount]:
        """Full scan of every account"""
        return [UserAccount.from_document(doc) for doc in self.users.find(sort=[("createdAt", -1)])]

    def list_summaries(self) -> List[Dict]:
        docs = self.users.find(sort=[("createdAt", -1)], fields=["username", "deviceId", "createdAt"])
        return [{k: v for k, v in doc.items() if k != "_id"} for doc in docs]

    # ============ REGISTRATION ============

    def reconcile_registration(self, username: str, password: str, device_id: str) -> Tuple[UserAccount, bool]:
        """
        Create the account, or overwrite only the password of an existing one.

        Safe to repeat: the existing-account lookup prevents duplicates, and a
        racing insert that loses on the unique index falls back to the
        password overwrite.

        Returns:
            (account, created)
        """
        existing = self.find_existing(username, device_id)
        if existing is None:
            account = UserAccount(
                username=username,
                password_hash=self.hasher.hash(password),
                device_id=device_id,
            )
            try:
                self.users.insert(account.to_document())
                logger.info(f"✅ User {username} registered with device {device_id}")
                return account, True
            except DuplicateKeyError as e:
                logger.warning(f"Registration raced with another writer ({e}), updating instead")
                existing = self.find_existing(username, device_id)
                if existing is None:
                    raise

        logger.info(f"⚠️ User already exists: {existing.username}")
        updated = self.users.find_one_and_update(
            {"deviceId": existing.device_id},
            {"password": self.hasher.hash(password)},
        )
        logger.info(f"✅ Updated password for existing user: {existing.username}")
        return UserAccount.from_document(updated), False

    async def async_reconcile_registration(self, username: str, password: str, device_id: str):
        """Reconcile registration (non-blocking async wrapper)"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.reconcile_registration, username, password, device_id)

    def register(self, username: str, password: str, device_id: str) -> UserAccount:
        """Manual registration; refuses an existing username or device id"""
        if not username or not password or not device_id:
            raise ValidationError("Username, password, and deviceId are required")
        if self.find_existing(username, device_id) is not None:
            raise AccountExistsError("User or device already exists")

        account = UserAccount(
            username=username,
            password_hash=self.hasher.hash(password),
            device_id=device_id,
        )
        try:
            self.users.insert(account.to_document())
        except DuplicateKeyError:
            raise AccountExistsError("User or device already exists")
        logger.info(f"✅ Manual registration successful: {username}")
        return account

    def authenticate(self, username: str, password: str) -> Optional[UserAccount]:
        """Case-insensitive username lookup plus bcrypt verification"""
        account = self.find_by_username(username)
        if account is None:
            logger.info(f"❌ User not found: \"{username}\"")
            return None
        if not self.hasher.verify(password, account.password_hash):
            logger.info(f"❌ Invalid password for user: {account.username}")
            return None
        logger.info(f"✅ Login successful for user: {account.username}")
        return account

    # ============ DASHBOARD ============

    def _save(self, account: UserAccount) -> None:
        self.users.replace_one({"deviceId": account.device_id}, account.to_document())

    def upsert_relay(self, device_id: str, index, name: str = None, image: str = None,
                     enabled: bool = None) -> UserAccount:
        """Update the relay with this channel index in place, or add it"""
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValidationError(f"Relay index must be a non-negative integer, got {index!r}")

        account = self.get_account(device_id)
        relay = account.dashboard.get_relay(index)
        if relay is not None:
            if name is not None:
                relay.name = name
            if image is not None:
                relay.image = image
            if enabled is not None:
                relay.enabled = enabled
            logger.info(f"Relay {index} updated for device {device_id}")
        else:
            account.dashboard.relays[index] = RelayConfig(
                index=index,
                name=name,
                image=image,
                enabled=True if enabled is None else enabled,
            )
            logger.info(f"Relay {index} added for device {device_id}")

        self._save(account)
        return account

    def _get_relay(self, account: UserAccount, relay_index: int) -> RelayConfig:
        relay = account.dashboard.get_relay(relay_index)
        if relay is None:
            raise RelayNotFoundError(account.device_id, relay_index)
        return relay

    def add_schedule(self, device_id: str, relay_index: int, days, start_time: str, end_time: str,
                     enabled: bool = None) -> List[Schedule]:
        days = validate_window(days, start_time, end_time)
        account = self.get_account(device_id)
        relay = self._get_relay(account, relay_index)

        schedule = Schedule(
            days=days,
            start_time=start_time,
            end_time=end_time,
            enabled=True if enabled is None else enabled,
        )
        relay.schedules.append(schedule)
        self._save(account)
        logger.info(f"📅 Schedule {schedule.id} added to relay {relay_index} of {device_id}: "
                    f"{start_time}-{end_time} days {days}")
        return relay.schedules

    def delete_schedule_at(self, device_id: str, relay_index: int, position: int) -> List[Schedule]:
        """Remove the schedule at a list position; later entries shift down by one"""
        account = self.get_account(device_id)
        relay = self._get_relay(account, relay_index)
        if not 0 <= position < len(relay.schedules):
            raise ScheduleNotFoundError(relay_index, position)

        removed = relay.schedules.pop(position)
        self._save(account)
        logger.info(f"🗑️ Schedule {removed.id} (position {position}) removed from relay {relay_index} of {device_id}")
        return relay.schedules

    def delete_schedule(self, device_id: str, relay_index: int, schedule_id: str) -> List[Schedule]:
        """Remove a schedule by its stable id"""
        account = self.get_account(device_id)
        relay = self._get_relay(account, relay_index)
        remaining = [s for s in relay.schedules if s.id != schedule_id]
        if len(remaining) == len(relay.schedules):
            raise ScheduleNotFoundError(relay_index, schedule_id)

        relay.schedules = remaining
        self._save(account)
        logger.info(f"🗑️ Schedule {schedule_id} removed from relay {relay_index} of {device_id}")
        return relay.schedules
