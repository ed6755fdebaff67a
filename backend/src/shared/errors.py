"""
Error taxonomy for the platform.
Every error carries the HTTP status the handler boundary maps it to.
"""


class SoundTrumpError(Exception):
    """Base class for errors surfaced to the caller as {success: false, error}."""
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthenticated(SoundTrumpError):
    status_code = 401

    def __init__(self, message: str = 'User not authenticated'):
        super().__init__(message)


class Forbidden(SoundTrumpError):
    status_code = 403

    def __init__(self, message: str = 'Admin privileges required'):
        super().__init__(message)


class NotFound(SoundTrumpError):
    status_code = 404


class ValidationError(SoundTrumpError):
    status_code = 400


class AlreadyStarted(SoundTrumpError):
    status_code = 409

    def __init__(self, message: str = 'Task already started'):
        super().__init__(message)


class AlreadyReviewed(SoundTrumpError):
    status_code = 409

    def __init__(self, message: str = 'Submission already reviewed'):
        super().__init__(message)


class InvalidTransition(SoundTrumpError):
    status_code = 409


class TaskUnavailable(SoundTrumpError):
    status_code = 410

    def __init__(self, message: str = 'This task has expired and is no longer available'):
        super().__init__(message)


class InsufficientPoints(SoundTrumpError):
    status_code = 400

    def __init__(self, message: str = 'Insufficient points'):
        super().__init__(message)


class ProviderError(SoundTrumpError):
    """Third-party OAuth provider failure."""
    status_code = 502


class InvalidGrant(ProviderError):
    """The provider rejected an authorization code or refresh token."""
    status_code = 401

    def __init__(self, message: str = 'Invalid grant', disconnected: bool = False):
        super().__init__(message)
        self.disconnected = disconnected


class StorageError(SoundTrumpError):
    """Object storage failure. Callers log it; it never blocks a row mutation."""
    status_code = 500
