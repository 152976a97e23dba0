from typing import Any

from fastapi import HTTPException, status


class TradesfinderError(HTTPException):
    code = "error"

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.extra = extra or {}

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.detail, "code": self.code, **self.extra}


class ValidationError(TradesfinderError):
    code = "validation_error"

    def __init__(self, detail: str, extra: dict[str, Any] | None = None):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST, extra=extra)


class AuthenticationRequiredError(TradesfinderError):
    code = "authentication_required"

    def __init__(self, detail: str = "You must be logged in"):
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class AuthorizationError(TradesfinderError):
    code = "forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(TradesfinderError):
    code = "not_found"

    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(TradesfinderError):
    code = "conflict"

    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_409_CONFLICT)


class InvalidTransitionError(TradesfinderError):
    """A status change that the entity's workflow does not permit.

    The client only ever sees the generic message; the attempted transition
    is kept on the exception for logging.
    """

    code = "invalid_transition"

    def __init__(self, entity: str, current: str, action: str):
        super().__init__(
            detail="Cannot perform this action",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.entity = entity
        self.current = current
        self.action = action


class QuotaExceededError(TradesfinderError):
    code = "quota_exceeded"

    def __init__(self, detail: str, upgrade_url: str | None = None):
        extra = {"upgradeUrl": upgrade_url} if upgrade_url else None
        super().__init__(detail=detail, status_code=status.HTTP_402_PAYMENT_REQUIRED, extra=extra)


class ExternalServiceError(TradesfinderError):
    code = "external_service_error"

    def __init__(self, service: str, detail: str | None = None):
        super().__init__(
            detail="Something went wrong, please try again",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
        self.service = service
        self.reason = detail
