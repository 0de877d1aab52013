"""
Exception types for showterm
Every failure surfaces as a ShowtermError carrying a human-readable message
"""


class ShowtermError(Exception):
    """Base class for all showterm failures"""


class MalformedRecordingError(ShowtermError):
    """A ttyrec recording is too short or truncated mid-frame"""


class CaptureInvocationError(ShowtermError):
    """The capture utility could not be run or produced nothing usable"""


class UploadError(ShowtermError):
    """Base class for upload failures"""


class UploadNetworkError(UploadError):
    """Connection, TLS or timeout failure while talking to the server"""


class UploadRejectedError(UploadError):
    """The server answered with a non-2xx status"""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(body or f"Server responded with HTTP {status_code}")


class TlsPinMismatchError(ShowtermError):
    """No certificate in the server's chain carries a pinned public key"""
