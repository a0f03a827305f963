"""
Error taxonomy.

Every error the service layer raises on purpose derives from
`ServiceError` and carries the logical status that ends up in the
response envelope.  Anything else reaching the HTTP layer is treated
as an unexpected 500.
"""


class ServiceError(Exception):
    status: int = 500
    trigger_logout: bool = False
    default_message: str = "Unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status = 400
    default_message = "Validation error"


class QueryTranslationError(ValidationError):
    """A query filter that cannot be expressed against the table."""


class AuthError(ServiceError):
    status = 401
    trigger_logout = True
    default_message = "Unauthorized"


class ForbiddenError(ServiceError):
    status = 403
    default_message = "Insufficient permissions"


class ConflictError(ServiceError):
    status = 409
    default_message = "Resource already exists"


class PayloadTooLargeError(ServiceError):
    status = 413
    default_message = "Upload failed. File is too large"


class StorageError(ServiceError):
    status = 500
    default_message = "Database operation failed"


class SessionRefreshError(ServiceError):
    status = 500
    default_message = "Unable to refresh session. Please try again."
