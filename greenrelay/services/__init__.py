"""Services package"""

from .account_service import AccountService
from .command_emitter import CommandEmitter
from .connected_devices import ConnectedDevices
from .device_status_service import DeviceStatusService
from .fanout import LiveUpdateFanout
from .passwords import PasswordHasher
from .scheduler import RelayScheduler, calculate_next_run

__all__ = [
    'AccountService', 'CommandEmitter', 'ConnectedDevices', 'DeviceStatusService',
    'LiveUpdateFanout', 'PasswordHasher', 'RelayScheduler', 'calculate_next_run',
]
