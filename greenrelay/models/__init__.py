"""Models package"""

from .dashboard import Schedule, RelayConfig, Dashboard, UserAccount
from .device_status import RelayObservation, DeviceStatusRecord
from .command import RelayCommand, RELAY_ACTIONS

__all__ = [
    'Schedule', 'RelayConfig', 'Dashboard', 'UserAccount',
    'RelayObservation', 'DeviceStatusRecord',
    'RelayCommand', 'RELAY_ACTIONS',
]
