from typing import Any

from fastapi import HTTPException, status


class CRMError(HTTPException):
    """
    Base of the service error taxonomy.
    Raised synchronously by services and rendered by FastAPI with a structured detail.
    """
    kind = "BadRequest"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        super().__init__(
            status_code=self.http_status,
            detail={"error": self.kind, "message": message, **extra},
        )


class BadRequest(CRMError):
    kind = "BadRequest"
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidRole(CRMError):
    kind = "InvalidRole"
    http_status = status.HTTP_400_BAD_REQUEST


class NoNextStage(CRMError):
    kind = "NoNextStage"
    http_status = status.HTTP_400_BAD_REQUEST


class Forbidden(CRMError):
    kind = "Forbidden"
    http_status = status.HTTP_403_FORBIDDEN


class NotFound(CRMError):
    kind = "NotFound"
    http_status = status.HTTP_404_NOT_FOUND


class Conflict(CRMError):
    kind = "Conflict"
    http_status = status.HTTP_409_CONFLICT


class DuplicateCode(Conflict):
    kind = "DuplicateCode"


class CapacityExceeded(Conflict):
    kind = "CapacityExceeded"


class HasOperators(Conflict):
    kind = "HasOperators"


class InUse(Conflict):
    kind = "InUse"


class InvalidTransition(Conflict):
    kind = "InvalidTransition"
