"""Exception hierarchy for the idle-resume trigger."""

from __future__ import annotations


class TriggerError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(TriggerError):
    """A setting or environment variable holds an unusable value."""


class NetworkError(TriggerError):
    """An outbound request failed at the transport or HTTP level."""


class HttpStatusError(NetworkError):
    """The server answered with a status the caller does not accept."""

    def __init__(self, url: str, status: int, payload: object = None) -> None:
        self.url = url
        self.status = status
        self.payload = payload
        super().__init__(f"{url} answered with status {status}")


class TimestampFetchError(NetworkError):
    """Training timestamps could not be fetched or decoded for one agent."""


class DispatchError(NetworkError):
    """The training command was not accepted by the agent's chat endpoint."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class WalletError(TriggerError):
    """Token usage could not be recorded against the user's wallet."""
