"""Error taxonomy for the group, join-request, message and key-envelope layers.

Every error is an ``HTTPException`` so routers can let it propagate and
FastAPI renders it as ``{"detail": {"code": ..., "message": ...}}``. The
``code`` values are stable and part of the public contract.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, status


class ServiceError(HTTPException):
    code = "service_error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        detail = {"code": self.code, "message": message, **extra}
        super().__init__(status_code=self.status_code_default, detail=detail)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(ServiceError):
    code = "validation_error"
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFound(ServiceError):
    code = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


class Forbidden(ServiceError):
    code = "forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN


class Banned(ServiceError):
    code = "banned"
    status_code_default = status.HTTP_403_FORBIDDEN


class GroupFull(ServiceError):
    code = "group_full"
    status_code_default = status.HTTP_409_CONFLICT


class CooldownActive(ServiceError):
    code = "cooldown_active"
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: datetime):
        self.retry_after = retry_after
        super().__init__(
            f"Cooldown active; try again after {retry_after.isoformat()}",
            retry_after=retry_after.isoformat(),
        )
        self.headers = {"Retry-After": retry_after.strftime("%a, %d %b %Y %H:%M:%S GMT")}


class NotAMember(ServiceError):
    code = "not_a_member"
    status_code_default = status.HTTP_403_FORBIDDEN


class OwnerCannotLeave(ServiceError):
    code = "owner_cannot_leave"
    status_code_default = status.HTTP_409_CONFLICT


class NotSoleMember(ServiceError):
    code = "not_sole_member"
    status_code_default = status.HTTP_409_CONFLICT


class CannotBanishOwner(ServiceError):
    code = "cannot_banish_owner"
    status_code_default = status.HTTP_409_CONFLICT


class RequestMismatch(ServiceError):
    code = "request_mismatch"
    status_code_default = status.HTTP_404_NOT_FOUND


class InvalidState(ServiceError):
    code = "invalid_state"
    status_code_default = status.HTTP_409_CONFLICT


class TransientError(ServiceError):
    """Serialization conflict that outlived the local retry budget."""

    code = "transient_error"
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE


# --- cryptographic failures: fatal to the operation, never retried ---

class CryptoError(ServiceError):
    code = "crypto_error"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvalidKeyLength(CryptoError):
    code = "invalid_key_length"


class InvalidEncoding(CryptoError):
    code = "invalid_encoding"


class AuthenticationFailed(CryptoError):
    code = "authentication_failed"


class DecryptionFailed(CryptoError):
    code = "decryption_failed"

    def __init__(self, message_id: Optional[int] = None):
        self.message_id = message_id
        super().__init__("Stored message could not be decrypted", message_id=message_id)
