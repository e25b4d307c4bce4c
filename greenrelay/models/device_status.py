"""Device telemetry models"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .dashboard import utcnow


class RelayObservation(BaseModel):
    """Observed state of one relay as reported by the device"""
    index: Optional[int] = None
    state: Optional[bool] = None
    name: Optional[str] = None
    timer: Optional[float] = None  # active-timer remaining, seconds


class DeviceStatusRecord(BaseModel):
    """Point-in-time telemetry snapshot of a device"""
    device_id: str = Field(alias="deviceId", min_length=1)
    ip: Optional[str] = None
    rssi: Optional[float] = None
    uptime: Optional[float] = None
    relays: List[Optional[RelayObservation]] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        # Stored timestamps are always UTC-aware; a device clock without an
        # offset is taken as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
