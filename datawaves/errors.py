"""
Domain error taxonomy.

Validation and authentication errors surface to the caller with a specific code.
Upstream and integrity errors are caught at the purchase pipeline boundary and
turned into a status transition plus an admin alert.
"""


class DomainError(Exception):
    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            **self.payload,
        }


class ValidationError(DomainError):
    """Bad input; user-correctable and raised before any side effect."""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(DomainError):
    status_code = 401
    code = "AUTH_REQUIRED"


class PermissionDenied(AuthenticationError):
    """Authenticated, but not the owner of the resource."""
    status_code = 403
    code = "ACCESS_DENIED"


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class UpstreamError(DomainError):
    """Payment gateway or aggregator failure. Never retried inside the pipeline."""
    status_code = 502
    code = "UPSTREAM_ERROR"

    def __init__(self, message, upstream_message=None, **kwargs):
        super().__init__(message, **kwargs)
        self.upstream_message = upstream_message or message


class PaymentInitializationError(UpstreamError):
    code = "PAYMENT_INITIALIZATION_FAILED"


class PaymentVerificationError(UpstreamError):
    code = "PAYMENT_VERIFICATION_FAILED"


class AggregatorError(UpstreamError):
    code = "AGGREGATOR_ERROR"


class IntegrityError(DomainError):
    """A linked entity the pipeline relies on has disappeared."""
    status_code = 500
    code = "INTEGRITY_ERROR"


class NotificationError(DomainError):
    """Always logged and swallowed by the notification center."""
    status_code = 502
    code = "NOTIFICATION_FAILED"


class InvalidStateTransition(DomainError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"
