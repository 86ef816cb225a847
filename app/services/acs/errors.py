class AcsConfigurationError(ValueError):
    """Monitoring config is missing or unusable (operator error, not transient)."""


class DeviceSyncError(Exception):
    """A single remote device record could not be reconciled."""

    def __init__(self, device_id: str, message: str):
        super().__init__(message)
        self.device_id = device_id
