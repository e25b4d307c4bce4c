"""Domain exceptions raised by GreenRelay services"""


class GreenRelayError(Exception):
    """Base class for service-level errors"""


class ValidationError(GreenRelayError):
    """Required input is missing or malformed"""


class AccountNotFoundError(GreenRelayError):
    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"User not found for device {device_id}")


class RelayNotFoundError(GreenRelayError):
    def __init__(self, device_id: str, relay_index: int):
        self.device_id = device_id
        self.relay_index = relay_index
        super().__init__(f"Relay {relay_index} not found for device {device_id}")


class ScheduleNotFoundError(GreenRelayError):
    def __init__(self, relay_index: int, schedule_ref):
        self.relay_index = relay_index
        self.schedule_ref = schedule_ref
        super().__init__(f"Schedule {schedule_ref} not found on relay {relay_index}")


class AccountExistsError(GreenRelayError):
    """Manual registration hit an existing username or device id"""
