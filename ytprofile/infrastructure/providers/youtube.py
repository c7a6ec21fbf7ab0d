import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, Optional, Tuple

from ytprofile.application.pipeline import ProfilePipeline
from ytprofile.crosscutting.config import (
    AUTHORIZATION_URL, COLLECTION_URL, DEFAULT_AUTHORIZATION_PARAMS, DEFAULT_HTTP_TIMEOUT,
    DEFAULT_SCOPES, IDENTITY_URL, ITEM_URL, TOKEN_URL, StrategySettings
)
from ytprofile.domain.entities import Profile
from ytprofile.domain.ports import ProfileCallback, ProtectedResourceClient
from ytprofile.domain.profile_fields import convert_profile_fields
from ytprofile.infrastructure.oauth2 import OAuth2Client

logger = logging.getLogger(__name__)


class YouTubeStrategy:
    """YouTube authentication strategy.

    Authenticates with Google's OAuth 2.0 authorization-code flow and builds a
    normalized profile with the following properties:

      - ``provider``      always ``youtube``
      - ``id``            the user's channel id
      - ``display_name``  the channel title
      - ``picture``       the default channel thumbnail
      - ``playlists``     the channel's playlists, each with its items in ``data``

    The OAuth2 client is held, not inherited; anything implementing
    ``get_protected_resource`` may be injected in its place for profile reads.
    """

    name = 'youtube'

    def __init__(self, options: Optional[Dict[str, Any]] = None,
                 oauth2: Optional[OAuth2Client] = None,
                 resource_client: Optional[ProtectedResourceClient] = None):
        """Initialize YouTube strategy.

        Args:
            options: Strategy options; every endpoint has a provider default
            oauth2: OAuth2 client; built from ``options`` when omitted
            resource_client: Client used for profile reads; defaults to ``oauth2``
        """
        options = dict(options or {})
        self.authorization_url = options.get('authorization_url') or AUTHORIZATION_URL
        self.token_url = options.get('token_url') or TOKEN_URL
        self.scope = list(options.get('scope') or DEFAULT_SCOPES)
        self.identity_url = options.get('identity_url') or IDENTITY_URL
        self.collection_url = options.get('collection_url') or COLLECTION_URL
        self.item_url = options.get('item_url') or ITEM_URL
        self._authorization_params = options.get('authorization_params')

        self._oauth2 = oauth2 or OAuth2Client(
            client_id=options.get('client_id') or '',
            client_secret=options.get('client_secret') or '',
            redirect_uri=options.get('callback_url'),
            authorization_url=self.authorization_url,
            token_url=self.token_url,
            timeout=options.get('timeout') or DEFAULT_HTTP_TIMEOUT,
        )
        self._resource_client = resource_client or self._oauth2

    @classmethod
    def from_settings(cls, settings: StrategySettings, **kwargs) -> 'YouTubeStrategy':
        return cls(settings.to_options(), **kwargs)

    def authorization_params(self, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Return extra parameters for the authorization redirect.

        Precedence: per-call ``authorization_params`` option, then the
        strategy-level default, then offline access with forced consent.
        """
        if options and options.get('authorization_params') is not None:
            return dict(options['authorization_params'])
        if self._authorization_params is not None:
            return dict(self._authorization_params)
        return dict(DEFAULT_AUTHORIZATION_PARAMS)

    def authorize_url(self, state: Optional[str] = None,
                      options: Optional[Dict[str, Any]] = None) -> str:
        """Build the consent URL the user is redirected to."""
        options = options or {}
        params: Dict[str, Any] = {
            'scope': ' '.join(options.get('scope') or self.scope),
        }
        if state:
            params['state'] = state
        params.update(self.authorization_params(options))
        return self._oauth2.authorize_url(params)

    def create_pipeline(self, request_id: Optional[str] = None) -> ProfilePipeline:
        return ProfilePipeline(
            client=self._resource_client,
            identity_url=self.identity_url,
            collection_url=self.collection_url,
            item_url=self.item_url,
            request_id=request_id or uuid.uuid4().hex[:12],
        )

    async def user_profile(self, access_token: str) -> Profile:
        """Retrieve the user profile from YouTube."""
        return await self.create_pipeline().run(access_token)

    async def user_profile_callback(self, access_token: str, done: ProfileCallback) -> None:
        """Retrieve the user profile and report it through ``done(error, profile)``."""
        await self.create_pipeline().run_with_callback(access_token, done)

    def load_user_profile(self, access_token: str) -> Profile:
        """Blocking variant of :meth:`user_profile` for callers without an event loop."""
        return asyncio.run(self.user_profile(access_token))

    def authenticate(self, code: str) -> Tuple[Dict[str, Any], Profile]:
        """Exchange an authorization code and load the matching profile.

        Raises:
            TokenExchangeError: If the code cannot be exchanged
            UpstreamError: If a profile read fails
            MalformedResponseError: If a profile response cannot be parsed
        """
        tokens = self._oauth2.exchange_code(code)
        logger.info("Authorization code exchanged; loading profile")
        profile = self.load_user_profile(tokens['access_token'])
        return tokens, profile

    def convert_profile_fields(self, profile_fields: Iterable[str]) -> str:
        return convert_profile_fields(profile_fields)
