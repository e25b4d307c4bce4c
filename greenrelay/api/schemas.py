"""Request bodies for the HTTP API.

Fields are optional so missing values produce the API's own 400 messages.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    class Config:
        populate_by_name = True


class RelayActionRequest(BaseModel):
    action: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)


class RelayConfigRequest(BaseModel):
    index: Optional[int] = None
    name: Optional[str] = None
    image: Optional[str] = None
    enabled: Optional[bool] = None


class ScheduleRequest(BaseModel):
    days: Optional[List[int]] = None
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    enabled: Optional[bool] = None

    class Config:
        populate_by_name = True
