"""HTTP + WebSocket surface for browsers"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .. import config
from ..exceptions import (
    AccountExistsError,
    AccountNotFoundError,
    RelayNotFoundError,
    ScheduleNotFoundError,
    ValidationError,
)
from ..services.scheduler import calculate_next_run
from .schemas import (
    LoginRequest,
    RegisterRequest,
    RelayActionRequest,
    RelayConfigRequest,
    ScheduleRequest,
)

logger = logging.getLogger(__name__)


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(server) -> FastAPI:
    """Build the API around a RelayServer's services"""
    api = FastAPI(title="GreenRelay", version=config.APP_VERSION)
    api.state.server = server

    accounts = server.accounts
    device_status = server.device_status
    emitter = server.command_emitter
    fanout = server.fanout

    # ============ ERROR MAPPING ============

    @api.exception_handler(AccountNotFoundError)
    async def _account_not_found(request: Request, exc: AccountNotFoundError):
        return _fail(404, "User not found")

    @api.exception_handler(RelayNotFoundError)
    async def _relay_not_found(request: Request, exc: RelayNotFoundError):
        return _fail(404, "Relay not found")

    @api.exception_handler(ScheduleNotFoundError)
    async def _schedule_not_found(request: Request, exc: ScheduleNotFoundError):
        return _fail(404, "Schedule not found")

    @api.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError):
        return _fail(400, str(exc))

    @api.exception_handler(AccountExistsError)
    async def _exists(request: Request, exc: AccountExistsError):
        return _fail(400, str(exc))

    @api.exception_handler(Exception)
    async def _server_error(request: Request, exc: Exception):
        logger.error(f"❌ Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return _fail(500, "Server error")

    # ============ AUTHENTICATION ============

    @api.post("/api/login")
    def login(body: LoginRequest):
        if not body.username or not body.password:
            return _fail(400, "Username and password are required")

        account = accounts.authenticate(body.username, body.password)
        if account is None:
            return _fail(401, "Invalid username or password")

        return {
            "success": True,
            "message": "Login successful",
            "user": {
                "username": account.username,
                "deviceId": account.device_id,
                "dashboard": account.dashboard.to_view(),
            },
        }

    @api.post("/api/register")
    def register(body: RegisterRequest):
        account = accounts.register(body.username, body.password, body.device_id)
        return {
            "success": True,
            "message": "User registered successfully",
            "user": {"username": account.username, "deviceId": account.device_id},
        }

    # ============ DASHBOARD & RELAYS ============

    @api.get("/api/dashboard/{device_id}")
    def get_dashboard(device_id: str):
        account = accounts.get_account(device_id)
        return {
            "success": True,
            "dashboard": account.dashboard.to_view(),
            "deviceStatus": device_status.latest(device_id),
        }

    @api.post("/api/relay/{device_id}/{relay_index}")
    def control_relay(device_id: str, relay_index: int, body: RelayActionRequest):
        try:
            emitter.emit(device_id, relay_index, body.action, body.duration)
        except ValueError as e:
            return _fail(400, str(e))
        return {"success": True, "message": f"Relay {relay_index} {body.action} command sent"}

    @api.put("/api/dashboard/relay/{device_id}")
    def update_relay(device_id: str, body: RelayConfigRequest):
        account = accounts.upsert_relay(device_id, body.index, body.name, body.image, body.enabled)
        return {
            "success": True,
            "message": "Relay configuration updated",
            "dashboard": account.dashboard.to_view(),
        }

    # ============ SCHEDULES ============

    @api.post("/api/dashboard/schedule/{device_id}/{relay_index}")
    def add_schedule(device_id: str, relay_index: int, body: ScheduleRequest):
        schedules = accounts.add_schedule(
            device_id, relay_index, body.days, body.start_time, body.end_time, body.enabled
        )
        return {
            "success": True,
            "message": "Schedule added successfully",
            "schedules": [s.to_document() for s in schedules],
        }

    @api.delete("/api/dashboard/schedule/{device_id}/{relay_index}/id/{schedule_id}")
    def delete_schedule_by_id(device_id: str, relay_index: int, schedule_id: str):
        schedules = accounts.delete_schedule(device_id, relay_index, schedule_id)
        return {
            "success": True,
            "message": "Schedule deleted successfully",
            "schedules": [s.to_document() for s in schedules],
        }

    @api.delete("/api/dashboard/schedule/{device_id}/{relay_index}/{position}")
    def delete_schedule_at(device_id: str, relay_index: int, position: int):
        schedules = accounts.delete_schedule_at(device_id, relay_index, position)
        return {
            "success": True,
            "message": "Schedule deleted successfully",
            "schedules": [s.to_document() for s in schedules],
        }

    @api.get("/api/schedules/{device_id}")
    def list_schedules(device_id: str):
        account = accounts.get_account(device_id)
        now = server.scheduler.now()
        schedules = [
            {
                "relayIndex": relay.index,
                "relayName": relay.name,
                **schedule.to_document(),
                "nextRun": calculate_next_run(schedule, now),
            }
            for relay in account.dashboard.relay_list()
            for schedule in relay.schedules
        ]
        return {"success": True, "schedules": schedules}

    # ============ DEVICES ============

    @api.get("/api/devices/connected")
    def connected_devices():
        return {"success": True, "devices": server.connected_devices.snapshot()}

    # ============ DEBUG & ADMIN ============

    @api.get("/api/debug/user/{username}")
    def debug_user(username: str):
        account = accounts.find_by_username(username)
        if account is None:
            return {"success": False, "message": "User not found", "allUsers": accounts.list_summaries()}
        return {
            "success": True,
            "user": {
                **account.summary(),
                "hasPassword": bool(account.password_hash),
                "relayCount": len(account.dashboard.relays),
                "scheduleCount": account.schedule_count(),
            },
        }

    @api.get("/api/debug/users")
    @api.get("/api/admin/users")
    def list_users():
        return {"success": True, "users": accounts.list_summaries()}

    @api.get("/api/admin/device-status")
    def list_device_status(limit: int = Query(default=50, ge=1, le=1000), deviceId: str = None):
        return {"success": True, "status": device_status.recent(limit=limit, device_id=deviceId)}

    @api.get("/api/admin/stats")
    def stats():
        return {
            "success": True,
            "stats": {"totalUsers": len(accounts.list_summaries()), **device_status.stats()},
        }

    @api.post("/admin/clear-old-data")
    def clear_old_data():
        deleted = device_status.purge_older_than()
        return {"success": True, "message": f"Cleared {deleted} old device status records"}

    @api.get("/api/health")
    def health():
        return {
            "status": "OK",
            "message": "GreenRelay server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": config.APP_VERSION,
            "mqttConnected": server.mqtt_client.connected,
            "liveClients": fanout.connection_count,
        }

    # ============ LIVE UPDATES ============

    async def live_updates(websocket: WebSocket):
        await fanout.connect(websocket)
        try:
            # Client messages are not part of the protocol; read only to notice disconnects
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            fanout.disconnect(websocket)

    api.add_api_websocket_route("/", live_updates)
    api.add_api_websocket_route("/ws", live_updates)

    return api
