import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import requests

from ytprofile.domain.errors import TokenExchangeError, TransportError
from ytprofile.infrastructure.oauth2 import OAuth2Client


def make_client(http_client=None):
    return OAuth2Client(
        client_id='cid',
        client_secret='sec',
        redirect_uri='http://127.0.0.1:3000/callback',
        authorization_url='https://accounts.test/o/oauth2/auth',
        token_url='https://accounts.test/o/oauth2/token',
        http_client=http_client,
    )


class _Resp:
    def __init__(self, status_code=200, json_data=None, text=''):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError('no json')
        return self._json


class TestAuthorizeURL:

    def test_includes_client_redirect_and_params(self):
        url = make_client().authorize_url({'scope': 'a b', 'access_type': 'offline', 'state': None})

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert parsed.netloc == 'accounts.test'
        assert params['response_type'] == ['code']
        assert params['client_id'] == ['cid']
        assert params['redirect_uri'] == ['http://127.0.0.1:3000/callback']
        assert params['scope'] == ['a b']
        assert params['access_type'] == ['offline']
        assert 'state' not in params


class TestExchangeCode:

    def test_success(self, monkeypatch):
        def fake_post(url, data=None, headers=None, timeout=None):
            assert url == 'https://accounts.test/o/oauth2/token'
            assert data['grant_type'] == 'authorization_code'
            assert data['code'] == 'abc'
            assert data['redirect_uri'] == 'http://127.0.0.1:3000/callback'
            return _Resp(200, json_data={
                'access_token': 'AT',
                'refresh_token': 'RT',
                'token_type': 'Bearer',
                'expires_in': 3600,
            })

        monkeypatch.setattr('requests.post', fake_post)

        tokens = make_client().exchange_code('abc')
        assert tokens['access_token'] == 'AT'
        assert tokens['refresh_token'] == 'RT'
        assert tokens['expires_in'] == 3600

    def test_rejected_code(self, monkeypatch):
        monkeypatch.setattr('requests.post', lambda *a, **kw: _Resp(400, text='invalid_grant'))

        with pytest.raises(TokenExchangeError) as exc_info:
            make_client().exchange_code('bad')
        assert exc_info.value.status_code == 400

    def test_network_failure(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.ConnectionError('refused')

        monkeypatch.setattr('requests.post', fake_post)

        with pytest.raises(TokenExchangeError):
            make_client().exchange_code('abc')

    def test_missing_access_token(self, monkeypatch):
        monkeypatch.setattr('requests.post', lambda *a, **kw: _Resp(200, json_data={'token_type': 'Bearer'}))

        with pytest.raises(TokenExchangeError):
            make_client().exchange_code('abc')


class TestGetProtectedResource:

    def test_sends_bearer_token_and_returns_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['auth'] = request.headers.get('Authorization')
            seen['url'] = str(request.url)
            return httpx.Response(200, text='{"items": []}')

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                return await make_client(http).get_protected_resource('https://api.test/channels', 'T1')

        body = asyncio.run(scenario())

        assert body == '{"items": []}'
        assert seen['auth'] == 'Bearer T1'
        assert seen['url'] == 'https://api.test/channels'

    def test_non_success_status_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text='quotaExceeded')

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await make_client(http).get_protected_resource('https://api.test/channels', 'T1')

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == 'quotaExceeded'

    def test_network_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('connection refused', request=request)

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await make_client(http).get_protected_resource('https://api.test/channels', 'T1')

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value.status_code is None
