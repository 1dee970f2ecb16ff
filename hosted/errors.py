class HostedError(Exception):
    """Base class for failures talking to the hosted backend."""


class HostedConfigError(HostedError):
    pass


class AuthenticationRequired(HostedError):
    """No usable session: the caller has to sign in again."""


class NotFound(HostedError):
    """Exactly one row was requested and none matched."""


class BackendError(HostedError):
    """Any other backend failure. The message is safe to show to users."""

    def __init__(self, message, status=None, code=None):
        super().__init__(message)
        self.status = status
        self.code = code
