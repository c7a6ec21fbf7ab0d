import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import requests

from ytprofile.domain.errors import TokenExchangeError, TransportError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0


class OAuth2Client:
    """Minimal OAuth 2.0 authorization-code client.

    Builds authorization URLs, exchanges codes for tokens and performs
    authenticated GETs. Resource reads are async (httpx) so that many of them
    can be in flight on one event loop; the token exchange is a single
    blocking POST.
    """

    def __init__(self,
                 client_id: str,
                 client_secret: str,
                 redirect_uri: Optional[str],
                 authorization_url: str,
                 token_url: str,
                 http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """Initialize OAuth2 client.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            redirect_uri: Callback URL registered with the provider
            authorization_url: Provider's authorization endpoint
            token_url: Provider's token endpoint
            http_client: Shared async client; a short-lived one is created per request when omitted
            timeout: Request timeout in seconds
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authorization_url = authorization_url
        self.token_url = token_url
        self.timeout = timeout
        self._http_client = http_client

    def authorize_url(self, params: Optional[Dict[str, Any]] = None) -> str:
        """Build the URL the user agent is redirected to for consent."""
        query: Dict[str, Any] = {
            'response_type': 'code',
            'client_id': self.client_id,
        }
        if self.redirect_uri:
            query['redirect_uri'] = self.redirect_uri
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value
        separator = '&' if '?' in self.authorization_url else '?'
        return self.authorization_url + separator + urlencode(query)

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for access and refresh tokens.

        Raises:
            TokenExchangeError: If the provider rejects the code or cannot be reached
        """
        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }
        if self.redirect_uri:
            data['redirect_uri'] = self.redirect_uri

        headers = {
            'Content-Type': 'application/x-www-form-urlencoded'
        }

        try:
            response = requests.post(self.token_url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TokenExchangeError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}",
                status_code=response.status_code
            )

        try:
            tokens = response.json()
        except ValueError as e:
            raise TokenExchangeError("Token endpoint returned invalid JSON") from e

        if not tokens.get('access_token'):
            raise TokenExchangeError("Token response has no access_token")

        return {
            'access_token': tokens['access_token'],
            'refresh_token': tokens.get('refresh_token'),
            'expires_in': tokens.get('expires_in'),
            'token_type': tokens.get('token_type', 'Bearer'),
            'scope': tokens.get('scope'),
        }

    async def get_protected_resource(self, url: str, access_token: str) -> str:
        """Perform an authenticated GET and return the body text.

        Raises:
            TransportError: On network failure or a non-2xx response
        """
        headers = {'Authorization': f'Bearer {access_token}'}

        if self._http_client is not None:
            return await self._get(self._http_client, url, headers)

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            return await self._get(client, url, headers)

    async def _get(self, client: httpx.AsyncClient, url: str, headers: Dict[str, str]) -> str:
        try:
            response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Request to {url} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        return response.text
