"""Exceptions for pydcc-ident: register access failures, Modbus I/O and input validation."""


class PyDCCIdentError(Exception):
    """Base exception for pydcc-ident."""

    pass


class RegisterAccessFailure(PyDCCIdentError):
    """Raised when a non-optional CV read/write fails during identification."""

    def __init__(self, address: int, reason: str, *, step: int | None = None) -> None:
        self.address = address
        self.reason = reason
        self.step = step
        super().__init__(f"CV {address} access failed at step {step}: {reason}")


class ModbusIOError(PyDCCIdentError):
    """Raised when the Modbus bridge cannot be reached (wraps pymodbus or connection errors)."""

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        port: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(message)


class InvalidImageError(PyDCCIdentError):
    """Raised when a simulated decoder image is malformed."""

    def __init__(self, source: str, message: str | None = None) -> None:
        self.source = source
        self._msg = message or f"Invalid decoder image: {source!r}"
        super().__init__(self._msg)


class InvalidAssignmentError(PyDCCIdentError):
    """Raised when a CV number or CV=value assignment string is malformed."""

    def __init__(self, raw: str, message: str | None = None) -> None:
        self.raw = raw
        self._msg = message or f"Invalid CV assignment: {raw!r}"
        super().__init__(self._msg)
