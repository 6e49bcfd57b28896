"""Domain-specific errors for switchbotctl."""


class SwitchBotError(Exception):
    """Base error for switchbotctl."""


class ConfigValidationError(SwitchBotError):
    """Raised when a configuration file does not conform to schema or semantics."""


class ConfigLoadError(SwitchBotError):
    """Raised when reading configuration sources fails."""


class ParameterError(SwitchBotError):
    """Raised when a caller-supplied argument is out of range or of the wrong shape."""


class DeviceSelectionError(SwitchBotError):
    """Raised when device matching cannot resolve a single target."""


class DeviceReturnedError(SwitchBotError):
    """Raised when a device answers a command with an error code."""

    def __init__(self, response: bytes, message: str | None = None) -> None:
        self.response = bytes(response)
        super().__init__(message or f"The device returned an error: 0x{self.response.hex()}")


class SessionError(SwitchBotError):
    """Base error for device session operations."""


class RadioNotReadyError(SessionError):
    """Raised when the Bluetooth adapter is not powered on."""


class BusyError(SessionError):
    """Raised when a connect/disconnect is attempted mid-transition."""


class ServiceNotFoundError(SessionError):
    """Raised when the primary service is missing from the GATT server."""


class CharacteristicNotFoundError(SessionError):
    """Raised when a required characteristic was not discovered."""


class SubscribeFailedError(SessionError):
    """Raised when subscribing to the notify characteristic fails."""


class DiscoveredWhileDisconnectedError(SessionError):
    """Raised when the peripheral disconnects during characteristic discovery."""


class DisconnectedWhileWaitingError(SessionError):
    """Raised when the peripheral disconnects while a command awaits its response."""


class SessionTimeoutError(SessionError):
    """Base error for session operations that ran out of time."""


class DiscoveryTimeoutError(SessionTimeoutError):
    """Raised when service/characteristic discovery does not finish in time."""


class WriteTimeoutError(SessionTimeoutError):
    """Raised when a characteristic write stalls."""


class ReadTimeoutError(SessionTimeoutError):
    """Raised when a characteristic read stalls."""


class CommandTimeoutError(SessionTimeoutError):
    """Raised when no notification answers a command in time."""


class TransportError(SwitchBotError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on BLE connect failures."""


class TransportSendError(TransportError):
    """Raised when a GATT operation fails inside the transport."""


class TransportTimeoutError(TransportError):
    """Raised when the transport gives up waiting for the radio."""
