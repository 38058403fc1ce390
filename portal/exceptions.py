class ServiceException(Exception):
    """Base exception for service layer errors"""
    retryable = False

    def __init__(self, message, error_code=None, status_code=400):
        self.message = message
        self.error_code = error_code or 'SERVICE_ERROR'
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self):
        return self.message


class ValidationError(ServiceException):
    """Raised when input validation fails"""
    def __init__(self, message="Validation failed", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'VALIDATION_ERROR',
            status_code=400
        )


class NotFoundError(ServiceException):
    """Raised when a requested entity does not exist"""
    def __init__(self, message="Not found", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'NOT_FOUND',
            status_code=404
        )


class InvalidToken(ServiceException):
    """Raised when an invitation token is unknown or already consumed"""
    def __init__(self, message="Invalid registration token", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'INVALID_TOKEN',
            status_code=400
        )


class TokenExpired(ServiceException):
    """Raised when an invitation token exists but is past its expiry"""
    def __init__(self, message="Invitation has expired", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'TOKEN_EXPIRED',
            status_code=400
        )


class AuthenticationError(ServiceException):
    """Raised when authentication fails"""
    def __init__(self, message="Authentication failed", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'AUTH_ERROR',
            status_code=401
        )


class AuthorizationError(ServiceException):
    """Raised when user doesn't have required permissions"""
    def __init__(self, message="Authorization failed", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'FORBIDDEN',
            status_code=403
        )


# Both login failures share one client-facing message and code so the
# response does not reveal whether the account exists.
LOGIN_FAILED_MESSAGE = "Invalid email or password"


class InvalidCredentials(AuthenticationError):
    def __init__(self):
        super().__init__(LOGIN_FAILED_MESSAGE, 'LOGIN_FAILED')


class AccountInactive(AuthorizationError):
    def __init__(self):
        super().__init__(LOGIN_FAILED_MESSAGE, 'LOGIN_FAILED')


class DependencyError(ServiceException):
    """Raised when the database or the mailer fails.

    The message is generic on purpose; callers log the underlying cause.
    """
    def __init__(self, message="Internal server error", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'DEPENDENCY_ERROR',
            status_code=500
        )


class StoreUnavailable(DependencyError):
    """Raised when a store write fails before anything was persisted"""
    retryable = True

    def __init__(self, message="Storage temporarily unavailable", error_code=None):
        super().__init__(message, error_code or 'STORE_UNAVAILABLE')


class NotificationError(DependencyError):
    """Raised when an email could not be delivered"""
    def __init__(self, message="Notification could not be delivered", error_code=None):
        super().__init__(message, error_code or 'NOTIFICATION_FAILED')


class ConfigurationError(ServiceException):
    """Raised when required settings are missing"""
    def __init__(self, message="Service is not configured", error_code=None):
        super().__init__(
            message=message,
            error_code=error_code or 'CONFIGURATION_ERROR',
            status_code=500
        )
