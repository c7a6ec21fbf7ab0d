import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional

from dotenv import dotenv_values

from ytprofile.domain.errors import ConfigError


AUTHORIZATION_URL = 'https://accounts.google.com/o/oauth2/auth'
TOKEN_URL = 'https://accounts.google.com/o/oauth2/token'
IDENTITY_URL = 'https://www.googleapis.com/youtube/v3/channels?part=snippet&mine=true'
COLLECTION_URL = 'https://www.googleapis.com/youtube/v3/playlists?part=snippet&maxResults=50&channelId='
ITEM_URL = 'https://www.googleapis.com/youtube/v3/playlistItems?part=snippet&maxResults=50&playlistId='
DEFAULT_SCOPES = ['https://www.googleapis.com/auth/youtube']
DEFAULT_AUTHORIZATION_PARAMS = {
    'access_type': 'offline',
    'approval_prompt': 'force',
}
DEFAULT_HTTP_TIMEOUT = 20.0


@dataclass
class StrategySettings:
    """Settings for the YouTube strategy, loaded from the environment."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None
    authorization_url: str = AUTHORIZATION_URL
    token_url: str = TOKEN_URL
    identity_url: str = IDENTITY_URL
    collection_url: str = COLLECTION_URL
    item_url: str = ITEM_URL
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    authorization_params: Optional[Dict[str, str]] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def require_client(self) -> None:
        """Raise ConfigError unless the OAuth client credentials are present."""
        if not self.client_id:
            raise ConfigError("YOUTUBE_CLIENT_ID not found in environment")
        if not self.client_secret:
            raise ConfigError("YOUTUBE_CLIENT_SECRET not found in environment")
        if not self.redirect_uri:
            raise ConfigError("YOUTUBE_REDIRECT_URI not found in environment")

    def to_options(self) -> Dict[str, Any]:
        """Get strategy options (endpoint overrides included)."""
        return {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'callback_url': self.redirect_uri,
            'authorization_url': self.authorization_url,
            'token_url': self.token_url,
            'identity_url': self.identity_url,
            'collection_url': self.collection_url,
            'item_url': self.item_url,
            'scope': list(self.scopes),
            'authorization_params': self.authorization_params,
            'timeout': self.http_timeout,
        }

    def summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        return {
            'has_client_id': bool(self.client_id),
            'has_client_secret': bool(self.client_secret),
            'redirect_uri': self.redirect_uri,
            'identity_url': self.identity_url,
            'collection_url': self.collection_url,
            'item_url': self.item_url,
            'scopes': list(self.scopes),
            'http_timeout': self.http_timeout,
        }


def _merged_env(env_file: Optional[str], environ: Optional[Mapping[str, str]]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    path = Path(env_file) if env_file else Path('.env')
    if path.exists():
        try:
            values.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to load .env file {path}: {e}")
    elif env_file:
        raise ConfigError(f".env file not found: {path}")

    values.update(environ if environ is not None else os.environ)
    return values


def load_settings(env_file: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> StrategySettings:
    """Load strategy settings.

    Values from the process environment (or ``environ``) override the .env file.

    Args:
        env_file: Path of a .env file; ``./.env`` is used when present
        environ: Mapping used instead of ``os.environ``

    Raises:
        ConfigError: If the .env file cannot be read or a value is invalid
    """
    env = _merged_env(env_file, environ)

    def get(key: str) -> Optional[str]:
        value = env.get(key)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    settings = StrategySettings(
        client_id=get('YOUTUBE_CLIENT_ID'),
        client_secret=get('YOUTUBE_CLIENT_SECRET'),
        redirect_uri=get('YOUTUBE_REDIRECT_URI'),
        authorization_url=get('YOUTUBE_AUTHORIZATION_URL') or AUTHORIZATION_URL,
        token_url=get('YOUTUBE_TOKEN_URL') or TOKEN_URL,
        identity_url=get('YOUTUBE_IDENTITY_URL') or IDENTITY_URL,
        collection_url=get('YOUTUBE_COLLECTION_URL') or COLLECTION_URL,
        item_url=get('YOUTUBE_ITEM_URL') or ITEM_URL,
    )

    scopes = get('YOUTUBE_SCOPES')
    if scopes:
        settings.scopes = scopes.split()

    access_type = get('YOUTUBE_ACCESS_TYPE')
    approval_prompt = get('YOUTUBE_APPROVAL_PROMPT')
    if access_type or approval_prompt:
        params = {}
        if access_type:
            params['access_type'] = access_type
        if approval_prompt:
            params['approval_prompt'] = approval_prompt
        settings.authorization_params = params

    timeout = get('YTPROFILE_HTTP_TIMEOUT')
    if timeout:
        try:
            settings.http_timeout = float(timeout)
        except ValueError:
            raise ConfigError(f"YTPROFILE_HTTP_TIMEOUT must be a number, got {timeout!r}")
        if settings.http_timeout <= 0:
            raise ConfigError("YTPROFILE_HTTP_TIMEOUT must be positive")

    return settings
