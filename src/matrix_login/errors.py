"""Login negotiation errors.

Every failure the negotiation can surface to a user is a subclass of
``LoginNegotiationError``. None of them is fatal: the controller records the
error, clears its in-progress flags and waits for a new attempt.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_IDENTIFIER = "invalid_identifier"
    AUTODISCOVERY_MALFORMED = "autodiscovery_malformed"
    AUTODISCOVERY_UNKNOWN = "autodiscovery_unknown"
    VERSION_NOT_FOUND = "version_not_found"
    VERSION_MALFORMED = "version_malformed"
    VERSION_UNKNOWN = "version_unknown"
    EMPTY_PASSWORD = "empty_password"
    LOGIN_REJECTED = "login_rejected"
    SSO_FAILED = "sso_failed"


class LoginNegotiationError(Exception):
    """Base class for recoverable login negotiation failures."""

    kind: ErrorKind
    default_message = "Login failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidIdentifier(LoginNegotiationError):
    kind = ErrorKind.INVALID_IDENTIFIER
    default_message = "You have entered an invalid Matrix ID  e.g @joe:matrix.org"


class AutodiscoveryMalformed(LoginNegotiationError):
    kind = ErrorKind.AUTODISCOVERY_MALFORMED
    default_message = "Autodiscovery failed. Received malformed response."


class AutodiscoveryUnknown(LoginNegotiationError):
    """Well-known lookup failed for a reason other than 404 or a bad body.

    Carries the HTTP status (0 when no response was received) and the Matrix
    ``errcode`` reported by the server, if any.
    """

    kind = ErrorKind.AUTODISCOVERY_UNKNOWN
    default_message = (
        "Autodiscovery failed. Unknown error when requesting .well-known."
    )

    def __init__(
        self,
        message: str | None = None,
        status_code: int = 0,
        errcode: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errcode = errcode


class VersionNotFound(LoginNegotiationError):
    kind = ErrorKind.VERSION_NOT_FOUND
    default_message = (
        "The required endpoints were not found. Possibly not a Matrix server."
    )


class VersionMalformed(LoginNegotiationError):
    kind = ErrorKind.VERSION_MALFORMED
    default_message = (
        "Received malformed response. Make sure the homeserver domain is valid."
    )


class VersionUnknown(LoginNegotiationError):
    kind = ErrorKind.VERSION_UNKNOWN
    default_message = (
        "An unknown error occurred. Make sure the homeserver domain is valid."
    )


class EmptyPassword(LoginNegotiationError):
    kind = ErrorKind.EMPTY_PASSWORD
    default_message = "Empty password"


class LoginRejected(LoginNegotiationError):
    kind = ErrorKind.LOGIN_REJECTED


class SsoFailed(LoginNegotiationError):
    kind = ErrorKind.SSO_FAILED
    default_message = "SSO login failed"
