"""Registry error taxonomy.

Services raise these; the exception handler in ``storda.main`` turns them
into ``{"detail": {"error", "message", ...}}`` responses.
"""

from typing import Optional


class RegistryError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict:
        detail = {"error": self.code, "message": self.message}
        if self.field:
            detail["field"] = self.field
        return detail


# --- Input ---

class ValidationError(RegistryError):
    code = "validation_error"
    status_code = 422


class InvalidImeiError(ValidationError):
    code = "invalid_imei"

    def __init__(self, message: str = "IMEI must be exactly 15 digits"):
        super().__init__(message, field="imei")


# --- Registration ---

class DuplicateImeiError(RegistryError):
    code = "duplicate_imei"
    status_code = 409


class BlacklistedDeviceError(RegistryError):
    code = "blacklisted_device"
    status_code = 403


# --- State machine ---

class IllegalTransitionError(RegistryError):
    code = "illegal_transition"
    status_code = 409


class TransferPendingError(IllegalTransitionError):
    code = "transfer_pending"


class NotVerifiedError(RegistryError):
    code = "not_verified"
    status_code = 409


class AlreadyResolvedError(RegistryError):
    code = "already_resolved"
    status_code = 409


# --- Ledger ---

class InsufficientBalanceError(RegistryError):
    code = "insufficient_balance"
    status_code = 402

    def __init__(self, required: int, balance: int):
        super().__init__(f"Need {required} points, balance is {balance}")
        self.required = required
        self.balance = balance


# --- Auth ---

class AuthenticationError(RegistryError):
    code = "authentication_failed"
    status_code = 401

    def __init__(self, message: str, remaining_attempts: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.remaining_attempts = remaining_attempts

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.remaining_attempts is not None:
            detail["remaining_attempts"] = self.remaining_attempts
        return detail


class LockedOutError(AuthenticationError):
    code = "locked_out"
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(f"Too many attempts. Try again in {retry_after}s", remaining_attempts=0, field="pin")
        self.retry_after = retry_after


# --- Lookup / access ---

class NotFoundError(RegistryError):
    code = "not_found"
    status_code = 404


class DeviceNotFoundError(NotFoundError):
    code = "device_not_found"

    def __init__(self, device_id: str):
        super().__init__(f"Device {device_id} not found")


class TransferNotFoundError(NotFoundError):
    code = "transfer_not_found"

    def __init__(self, transfer_id: str):
        super().__init__(f"Transfer {transfer_id} not found")


class PermissionDeniedError(RegistryError):
    code = "permission_denied"
    status_code = 403


class NotOwnerError(PermissionDeniedError):
    code = "not_owner"

    def __init__(self, message: str = "Only the current owner can do this"):
        super().__init__(message)


class NotRecipientError(PermissionDeniedError):
    code = "not_recipient"

    def __init__(self, message: str = "This transfer is addressed to someone else"):
        super().__init__(message)


class AccountExistsError(RegistryError):
    code = "account_exists"
    status_code = 409
