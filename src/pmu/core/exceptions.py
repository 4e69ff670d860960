"""pmu exceptions for error handling."""


class PmuError(Exception):
    """Base exception for pmu operations."""

    pass


class ProtocolError(PmuError, ValueError):
    """Raised when a wire message cannot be decoded."""

    pass


class DaemonStartError(PmuError):
    """Raised when a spawned daemon never starts accepting connections."""

    pass


class BackendError(PmuError):
    """Raised when the audio backend itself is unusable (e.g. mpv missing)."""

    pass


class DecodeError(BackendError):
    """Raised when the audio backend cannot play a file."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        super().__init__(message or f"Cannot decode audio file: {path}")


class PresenceError(PmuError):
    """Raised when Discord Rich Presence cannot be updated."""

    pass


class LastfmError(PmuError):
    """Raised when a Last.fm API call fails."""

    def __init__(self, message: str, code: int = None):
        self.code = code
        super().__init__(message)
