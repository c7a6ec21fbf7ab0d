from typing import Optional


class ProfileError(Exception):
    """Base class for failures while building a user profile."""


class TransportError(Exception):
    """An authenticated GET against the provider failed.

    Carries the HTTP status and response body when the provider answered.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamError(ProfileError):
    """Network or provider failure of one stage of the fetch cascade."""

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None,
                 playlist_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.cause = cause
        self.playlist_id = playlist_id

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.args[0]}"
        if self.cause is not None:
            text += f": {self.cause}"
        return text


class MalformedResponseError(ProfileError):
    """Response body could not be parsed as the expected JSON document."""

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None,
                 playlist_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.cause = cause
        self.playlist_id = playlist_id

    def __str__(self) -> str:
        return f"[{self.stage}] {self.args[0]}"


class TokenExchangeError(Exception):
    """Authorization code could not be exchanged for an access token."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(Exception):
    """Configuration error."""
    pass
