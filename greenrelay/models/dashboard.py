"""
Account and dashboard models.

Documents are stored with camelCase keys (the same shape the device firmware
and the browser dashboard use); Python code works with snake_case attributes.
The relay map is keyed by channel index so a device can never hold two relay
entries for the same channel.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_schedule_id() -> str:
    return uuid.uuid4().hex


class Schedule(BaseModel):
    """One recurring activation window for a relay"""
    id: str = Field(default_factory=new_schedule_id)
    days: List[int] = Field(default_factory=list)  # 0=Sunday .. 6=Saturday
    start_time: str = Field(alias="startTime")  # "HH:MM"
    end_time: str = Field(alias="endTime")  # "HH:MM"
    enabled: bool = True

    class Config:
        populate_by_name = True

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class RelayConfig(BaseModel):
    """One controllable channel on a device"""
    index: int = Field(ge=0)
    name: Optional[str] = None
    image: Optional[str] = None
    enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    schedules: List[Schedule] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True, exclude={"schedules"})
        doc["schedules"] = [s.to_document() for s in self.schedules]
        return doc


class Dashboard(BaseModel):
    relays: Dict[int, RelayConfig] = Field(default_factory=dict)

    @field_validator("relays", mode="before")
    @classmethod
    def _relays_from_list(cls, value):
        # Older documents keep relays as a list; key them by channel index.
        # On duplicate indices the last entry wins.
        if isinstance(value, list):
            keyed = {}
            for relay in value:
                if isinstance(relay, dict):
                    keyed[relay.get("index")] = relay
                else:
                    keyed[relay.index] = relay
            return keyed
        return value

    def relay_list(self) -> List[RelayConfig]:
        """Relays ordered by channel index"""
        return [self.relays[i] for i in sorted(self.relays)]

    def get_relay(self, index: int) -> Optional[RelayConfig]:
        return self.relays.get(index)

    def to_document(self) -> dict:
        # Firestore map keys must be strings
        return {"relays": {str(i): r.to_document() for i, r in self.relays.items()}}

    def to_view(self) -> dict:
        """API/browser representation: relays as a list ordered by index"""
        return {"relays": [r.to_document() for r in self.relay_list()]}


class UserAccount(BaseModel):
    """Operator account paired with exactly one device"""
    username: str
    password_hash: str = Field(alias="password")
    device_id: str = Field(alias="deviceId")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    dashboard: Dashboard = Field(default_factory=Dashboard)

    class Config:
        populate_by_name = True

    @staticmethod
    def username_key(username: str) -> str:
        """Normalized username used for case-insensitive lookup and uniqueness"""
        return username.strip().lower()

    @classmethod
    def from_document(cls, doc: dict) -> "UserAccount":
        return cls.model_validate(doc)

    def to_document(self) -> dict:
        return {
            "username": self.username,
            "usernameKey": self.username_key(self.username),
            "password": self.password_hash,
            "deviceId": self.device_id,
            "createdAt": self.created_at,
            "dashboard": self.dashboard.to_document(),
        }

    def summary(self) -> dict:
        """Account overview without credentials"""
        return {
            "username": self.username,
            "deviceId": self.device_id,
            "createdAt": self.created_at,
        }

    def schedule_count(self) -> int:
        return sum(len(r.schedules) for r in self.dashboard.relays.values())
