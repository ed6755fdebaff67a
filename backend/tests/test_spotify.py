"""
Tests for the Spotify token broker. The token endpoint is replaced by a fake
opener; persistence runs against moto.
"""
import base64
import io
import json
import urllib.error
import urllib.parse

import pytest

from shared.dynamo import CONNECTED_SERVICES
from shared.errors import InvalidGrant, NotFound, ProviderError, ValidationError
from shared.spotify import SpotifyTokenBroker, public_connection

TOKEN_URL = 'https://accounts.spotify.test/api/token'


class FakeResponse(io.BytesIO):

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeOpener:
    """Records requests and answers with a canned JSON payload or HTTP error."""

    def __init__(self, payload=None, status=200):
        self.payload = payload or {}
        self.status = status
        self.requests = []

    def __call__(self, request, timeout=None):
        self.requests.append((request, timeout))
        body = json.dumps(self.payload).encode()
        if self.status >= 400:
            raise urllib.error.HTTPError(request.full_url, self.status, 'error', {}, io.BytesIO(body))
        return FakeResponse(body)

    def form(self, index=-1):
        return dict(urllib.parse.parse_qsl(self.requests[index][0].data.decode()))


def make_broker(store, clock, opener, client_id='client', client_secret='secret'):
    return SpotifyTokenBroker(
        store,
        client_id=client_id,
        client_secret=client_secret,
        token_url=TOKEN_URL,
        timeout=5,
        opener=opener,
        clock=clock
    )


def connection(store, user_id):
    return store.get_item(CONNECTED_SERVICES, {'userId': user_id, 'serviceName': 'spotify'})


class TestExchangeCode:

    def test_exchange_posts_authorization_code(self, store, clock):
        opener = FakeOpener({'access_token': 'at', 'refresh_token': 'rt', 'expires_in': 3600})
        broker = make_broker(store, clock, opener)

        token = broker.exchange_code('the-code', 'https://app.test/callback')

        assert token['access_token'] == 'at'
        request, timeout = opener.requests[0]
        assert request.full_url == TOKEN_URL
        assert request.get_method() == 'POST'
        assert timeout == 5
        assert request.get_header('Authorization') == 'Basic ' + base64.b64encode(b'client:secret').decode()
        assert opener.form() == {
            'grant_type': 'authorization_code',
            'code': 'the-code',
            'redirect_uri': 'https://app.test/callback',
        }

    def test_provider_error_keeps_description_and_status(self, store, clock):
        opener = FakeOpener({'error': 'invalid_client', 'error_description': 'Invalid client'}, status=400)

        with pytest.raises(ProviderError) as exc:
            make_broker(store, clock, opener).exchange_code('code', 'https://app.test/cb')

        assert exc.value.message == 'Invalid client'
        assert exc.value.status_code == 400

    def test_invalid_grant(self, store, clock):
        opener = FakeOpener({'error': 'invalid_grant', 'error_description': 'Invalid authorization code'}, status=400)

        with pytest.raises(InvalidGrant):
            make_broker(store, clock, opener).exchange_code('used-code', 'https://app.test/cb')

    def test_missing_credentials(self, store, clock):
        opener = FakeOpener()

        with pytest.raises(ProviderError) as exc:
            make_broker(store, clock, opener, client_id='', client_secret='').exchange_code('c', 'https://x')

        assert exc.value.status_code == 500
        assert opener.requests == []

    def test_missing_parameters(self, store, clock):
        with pytest.raises(ValidationError):
            make_broker(store, clock, FakeOpener()).exchange_code('', 'https://x')


class TestConnectAndRefresh:

    def test_connect_stores_tokens_and_expiry(self, store, clock):
        broker = make_broker(store, clock, FakeOpener())

        public = broker.connect('u1', {'access_token': 'at', 'refresh_token': 'rt', 'expires_in': 3600}, 'spotify-u1')

        stored = connection(store, 'u1')
        assert stored['refreshToken'] == 'rt'
        assert stored['expiresAt'] == clock() + 3600
        assert stored['serviceUserId'] == 'spotify-u1'
        assert 'refreshToken' not in public

    def test_refresh_keeps_old_refresh_token(self, store, clock):
        broker = make_broker(store, clock, FakeOpener({'access_token': 'new-at', 'expires_in': 1800}))
        broker.connect('u1', {'access_token': 'old-at', 'refresh_token': 'rt', 'expires_in': 3600})
        clock.advance(100)

        result = broker.refresh('u1', 'rt')

        assert result == {'success': True, 'expires_in': 1800}
        stored = connection(store, 'u1')
        assert stored['accessToken'] == 'new-at'
        assert stored['refreshToken'] == 'rt'
        assert stored['expiresAt'] == clock() + 1800
        assert broker.opener.form() == {'grant_type': 'refresh_token', 'refresh_token': 'rt'}

    def test_refresh_stores_rotated_refresh_token(self, store, clock):
        broker = make_broker(store, clock, FakeOpener({'access_token': 'a2', 'refresh_token': 'rt2', 'expires_in': 60}))
        broker.connect('u1', {'access_token': 'a1', 'refresh_token': 'rt1', 'expires_in': 60})

        broker.refresh('u1', 'rt1')

        assert connection(store, 'u1')['refreshToken'] == 'rt2'

    def test_revoked_refresh_token_disconnects(self, store, clock):
        """invalid_grant on refresh deletes the connection and reports disconnected."""
        opener = FakeOpener({'error': 'invalid_grant', 'error_description': 'Refresh token revoked'}, status=400)
        broker = make_broker(store, clock, opener)
        broker.connect('u1', {'access_token': 'at', 'refresh_token': 'revoked', 'expires_in': 3600})

        with pytest.raises(InvalidGrant) as exc:
            broker.refresh('u1', 'revoked')

        assert exc.value.disconnected is True
        assert exc.value.status_code == 401
        assert connection(store, 'u1') is None

    def test_rejected_foreign_token_keeps_connection(self, store, clock):
        """Only a rejection of the stored refresh token removes the connection."""
        opener = FakeOpener({'error': 'invalid_grant', 'error_description': 'Invalid refresh token'}, status=400)
        broker = make_broker(store, clock, opener)
        broker.connect('u1', {'access_token': 'at', 'refresh_token': 'stored', 'expires_in': 3600})

        with pytest.raises(InvalidGrant) as exc:
            broker.refresh('u1', 'junk')

        assert exc.value.disconnected is False
        assert connection(store, 'u1')['refreshToken'] == 'stored'

    def test_refresh_without_connection(self, store, clock):
        broker = make_broker(store, clock, FakeOpener({'access_token': 'at', 'expires_in': 60}))

        with pytest.raises(NotFound):
            broker.refresh('nobody', 'rt')
        assert connection(store, 'nobody') is None

    def test_other_refresh_errors_keep_connection(self, store, clock):
        opener = FakeOpener({'error': 'server_error'}, status=503)
        broker = make_broker(store, clock, opener)
        broker.connect('u1', {'access_token': 'at', 'refresh_token': 'rt', 'expires_in': 3600})

        with pytest.raises(ProviderError) as exc:
            broker.refresh('u1', 'rt')

        assert not isinstance(exc.value, InvalidGrant)
        assert exc.value.status_code == 503
        assert connection(store, 'u1') is not None

    def test_disconnect(self, store, clock):
        broker = make_broker(store, clock, FakeOpener())
        broker.connect('u1', {'access_token': 'at', 'expires_in': 60})

        broker.disconnect('u1')

        assert broker.get_connection('u1') is None

    def test_public_connection_hides_refresh_token(self):
        assert public_connection({'userId': 'u', 'refreshToken': 'rt', 'accessToken': 'at'}) == \
            {'userId': 'u', 'accessToken': 'at'}
