"""Error taxonomy shared by the policy, lifecycle engine and API layer.

Every error carries a short ``code`` tag and the HTTP status the API
answers with; ``main`` renders them as ``{"detail": ..., "code": ...}``.
"""
from typing import Optional


class MarketplaceError(Exception):
    code = "internal"
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationFailed(MarketplaceError):
    code = "validation"
    status_code = 400


class Unauthenticated(MarketplaceError):
    code = "unauthenticated"
    status_code = 401


class Forbidden(MarketplaceError):
    code = "forbidden"
    status_code = 403


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404


class InvalidTransition(MarketplaceError):
    code = "invalid_transition"
    status_code = 409
