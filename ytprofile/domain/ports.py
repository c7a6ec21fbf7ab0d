from __future__ import annotations

from typing import Callable, Optional, Protocol

from .entities import Profile


class ProtectedResourceClient(Protocol):
    """Port for the single capability the fetch cascade needs from OAuth2.

    Implementations perform an authenticated GET and return the raw body text.
    Any transport or provider failure must surface as ``TransportError``.
    """

    async def get_protected_resource(self, url: str, access_token: str) -> str:
        """Return the body of ``url`` fetched with ``access_token``."""


ProfileCallback = Callable[[Optional[BaseException], Optional[Profile]], None]
