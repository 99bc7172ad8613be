"""
Error taxonomy for the WebDAV backup engine
"""

from enum import Enum


class WebDAVError(Exception):
    """Base class for engine errors"""


class ConfigValidationError(WebDAVError):
    """A required configuration field is missing; raised before any network call"""


class TransportErrorKind(str, Enum):
    """Why a request never produced an HTTP response"""

    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"  # proxy endpoint missing or reloading
    INVALIDATED = "invalidated"  # host context gone
    CHANNEL = "channel"
    NO_RESPONSE = "no_response"
    REJECTED = "rejected"  # host answered success=False
    MALFORMED = "malformed"
    NETWORK = "network"


class TransportError(WebDAVError):
    """The request could not be delivered or answered"""

    def __init__(self, kind: TransportErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind == TransportErrorKind.UNAVAILABLE

    def __repr__(self) -> str:
        return f"TransportError(kind={self.kind.value!r}, message={self.message!r})"


class ProtocolError(WebDAVError):
    """A well-formed HTTP response with a non-success status"""

    def __init__(self, status: int, status_text: str, diagnostic: str):
        super().__init__(diagnostic)
        self.status = status
        self.status_text = status_text
        self.diagnostic = diagnostic


class ParseError(WebDAVError):
    """A listing or snapshot body could not be decoded"""


class ChannelUnavailableError(Exception):
    """Receiving end does not exist (host endpoint missing or being reloaded)"""


class ChannelError(Exception):
    """Any other failure of the message channel itself"""
