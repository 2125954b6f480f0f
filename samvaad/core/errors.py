# samvaad/core/errors.py


class SamvaadError(Exception):
    """Base class for every error the chat core raises on purpose."""


class ValidationError(SamvaadError):
    """Input rejected before any I/O (e.g. empty message body)."""


class StoreUnavailable(SamvaadError):
    """The message store could not be reached."""


class ChannelUnavailable(SamvaadError):
    """The real-time channel is disconnected (or gave up reconnecting)."""


class HistoryFetchFailed(SamvaadError):
    """Loading a room's message history failed."""


class AuthError(SamvaadError):
    """Missing, malformed or expired credentials."""


class DuplicateApplication(SamvaadError):
    """A pending or accepted volunteer application already uses this email."""
