"""
Error taxonomy for Campaign Hub

Every failure that reaches a client is rendered as
``{"error": {"code": ..., "message": ..., "details": ...}}``.
"""
from typing import Any, Optional


class CampaignHubError(Exception):
    """Base class for errors that map onto the public error envelope"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


class ValidationError(CampaignHubError):
    """Malformed or missing input; always client-correctable"""
    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthenticatedError(CampaignHubError):
    """Missing, invalid or expired bearer token"""
    code = "UNAUTHENTICATED"
    status_code = 401


class ForbiddenError(CampaignHubError):
    """Authenticated caller does not own the resource"""
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(CampaignHubError):
    code = "NOT_FOUND"
    status_code = 404


class InternalError(CampaignHubError):
    """Persistence or unexpected failure; the message stays generic"""
    code = "INTERNAL_ERROR"
    status_code = 500
