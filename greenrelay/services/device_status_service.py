"""Device status service - time-series telemetry records"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .. import config
from ..models import DeviceStatusRecord
from ..storage import DocumentStore

logger = logging.getLogger(__name__)

_NEWEST_FIRST = [("timestamp", -1)]


class DeviceStatusService:
    """Snapshot inserts, targeted relay-state upserts and retention for status records.

    Snapshot records (from device-status messages) and partial records created
    by relay-status upserts share one collection.
    """

    def __init__(self, store: DocumentStore, collection_name: str = None, retention_seconds: int = None):
        self.records = store.collection(collection_name or config.DEVICE_STATUS_COLLECTION)
        self.retention_seconds = retention_seconds or config.STATUS_RETENTION_SECONDS

    # ============ WRITES ============

    def insert_snapshot(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Append a full telemetry snapshot (never updates an existing record)"""
        record = DeviceStatusRecord.model_validate(payload)
        doc = record.to_document()
        doc["_id"] = self.records.insert(doc)
        logger.debug(f"Saved status snapshot for {record.device_id}")
        return doc

    async def async_insert_snapshot(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Insert snapshot (non-blocking async wrapper)"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.insert_snapshot, payload)

    def upsert_relay_state(self, device_id: str, relay: int, state, timer) -> Dict[str, Any]:
        """Set one relay's state/timer on the newest record for the device, creating it if absent"""
        return self.records.find_one_and_update(
            {"deviceId": device_id},
            {
                f"relays.{relay}.state": state,
                f"relays.{relay}.timer": timer,
                "timestamp": datetime.now(timezone.utc),
            },
            upsert=True,
            sort=_NEWEST_FIRST,
        )

    async def async_upsert_relay_state(self, device_id: str, relay: int, state, timer) -> Dict[str, Any]:
        """Upsert relay state (non-blocking async wrapper)"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.upsert_relay_state, device_id, relay, state, timer)

    def purge_older_than(self, seconds: int = None) -> int:
        """Delete status records older than the retention threshold (default 1 hour)"""
        seconds = seconds or self.retention_seconds
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=seconds)
        deleted = self.records.delete_many({"timestamp": {"$lt": cutoff}})
        logger.info(f"🗑️ Cleared {deleted} device status records older than {seconds}s")
        return deleted

    # ============ READS ============

    def latest(self, device_id: str) -> Optional[Dict[str, Any]]:
        return self.records.find_one({"deviceId": device_id}, sort=_NEWEST_FIRST)

    def recent(self, limit: int = 50, device_id: str = None) -> List[Dict[str, Any]]:
        filter_ = {"deviceId": device_id} if device_id else None
        return self.records.find(filter_, sort=_NEWEST_FIRST, limit=limit)

    def stats(self) -> Dict[str, Any]:
        newest = self.records.find_one(sort=_NEWEST_FIRST)
        return {
            "totalDeviceStatus": self.records.count(),
            "activeDevices": len(self.records.distinct("deviceId")),
            "lastUpdate": newest["timestamp"] if newest else "Never",
        }
