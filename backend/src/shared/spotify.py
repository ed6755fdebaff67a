"""
Spotify OAuth token broker.

Keeps the client secret server-side: exchanges authorization codes for
tokens, refreshes access tokens and stores them per user in the
connected-services table. Tokens and codes are never written to the log.
"""
import base64
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from .config import config
from .dynamo import Store, CONNECTED_SERVICES
from .errors import InvalidGrant, NotFound, ProviderError, ValidationError
from .logging import logger
from .models import ServiceName


class SpotifyTokenBroker:
    """Token endpoint client plus persistence of the resulting tokens."""

    def __init__(
        self,
        store: Store,
        client_id: str = None,
        client_secret: str = None,
        token_url: str = None,
        timeout: float = None,
        opener=urllib.request.urlopen,
        clock=time.time
    ):
        self.store = store
        self.client_id = config.SPOTIFY_CLIENT_ID if client_id is None else client_id
        self.client_secret = config.SPOTIFY_CLIENT_SECRET if client_secret is None else client_secret
        self.token_url = token_url or config.SPOTIFY_TOKEN_URL
        self.timeout = timeout or config.SPOTIFY_HTTP_TIMEOUT
        self.opener = opener
        self.clock = clock

    # ---- token endpoint ----

    def _request_token(self, params: Dict[str, str]) -> Dict[str, Any]:
        """
        POST a form-encoded grant to the token endpoint.

        Raises:
            InvalidGrant: the provider answered with error=invalid_grant
            ProviderError: any other provider or transport failure
        """
        if not self.client_id or not self.client_secret:
            raise ProviderError('Spotify credentials not configured', status_code=500)

        credentials = base64.b64encode(f'{self.client_id}:{self.client_secret}'.encode()).decode()
        request = urllib.request.Request(
            self.token_url,
            data=urllib.parse.urlencode(params).encode(),
            headers={
                'Content-Type': 'application/x-www-form-urlencoded',
                'Authorization': f'Basic {credentials}',
            },
            method='POST'
        )

        try:
            with self.opener(request, timeout=self.timeout) as response:
                return json.loads(response.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            error = _read_error(e)
            logger.error(f"Spotify token endpoint returned {e.code}: {error.get('error')}")
            if error.get('error') == 'invalid_grant':
                raise InvalidGrant(error.get('error_description') or 'Invalid grant') from e
            raise ProviderError(
                error.get('error_description') or 'Spotify token request failed',
                status_code=e.code
            ) from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.error(f"Spotify token request failed: {e}")
            raise ProviderError('Spotify token request failed') from e

    def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Exchange an authorization code for {access_token, refresh_token, expires_in, ...}."""
        if not code or not redirect_uri:
            raise ValidationError('Missing required parameters')

        return self._request_token({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': redirect_uri,
        })

    def refresh(self, user_id: str, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh the user's access token and persist it.

        The stored refresh token is replaced only when the provider returns a
        new one. An invalid_grant answer for the stored refresh token
        disconnects the service.

        Returns:
            {success: True, expires_in}
        """
        if not refresh_token or not user_id:
            raise ValidationError('Missing required parameters')

        try:
            token = self._request_token({
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
            })
        except InvalidGrant as e:
            if not self._disconnect_token(user_id, refresh_token):
                raise InvalidGrant('Invalid refresh token') from e
            logger.info(f"Spotify refresh token rejected; disconnected user {user_id}")
            raise InvalidGrant('Invalid refresh token. Spotify has been disconnected.', disconnected=True) from e

        now = int(self.clock())
        expires_in = int(token.get('expires_in') or 0)
        try:
            self.store.update_item(
                CONNECTED_SERVICES,
                {'userId': user_id, 'serviceName': ServiceName.SPOTIFY},
                'SET #accessToken = :access, #refreshToken = :refresh, #expiresAt = :exp, #updatedAt = :ts',
                expression_values={
                    ':access': token['access_token'],
                    ':refresh': token.get('refresh_token') or refresh_token,
                    ':exp': now + expires_in,
                    ':ts': now,
                },
                expression_names={
                    '#accessToken': 'accessToken',
                    '#refreshToken': 'refreshToken',
                    '#expiresAt': 'expiresAt',
                    '#updatedAt': 'updatedAt',
                    '#userId': 'userId',
                },
                condition='attribute_exists(#userId)',
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise NotFound('Spotify is not connected') from e
            raise
        logger.info(f"Refreshed Spotify token for user {user_id}")
        return {'success': True, 'expires_in': expires_in}

    # ---- connected services ----

    def connect(self, user_id: str, token: Dict[str, Any], service_user_id: str = None) -> Dict[str, Any]:
        """Store (or replace) the user's Spotify tokens."""
        if not token.get('access_token'):
            raise ValidationError('access_token is required')

        now = int(self.clock())
        existing = self.store.get_item(CONNECTED_SERVICES, {'userId': user_id, 'serviceName': ServiceName.SPOTIFY})
        item = {
            'userId': user_id,
            'serviceName': ServiceName.SPOTIFY,
            'serviceUserId': service_user_id or (existing or {}).get('serviceUserId'),
            'accessToken': token['access_token'],
            'refreshToken': token.get('refresh_token') or (existing or {}).get('refreshToken'),
            'expiresAt': now + int(token.get('expires_in') or 0),
            'createdAt': (existing or {}).get('createdAt', now),
            'updatedAt': now,
        }
        self.store.put_item(CONNECTED_SERVICES, item)
        logger.info(f"Connected Spotify for user {user_id}")
        return public_connection(item)

    def get_connection(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get_item(CONNECTED_SERVICES, {'userId': user_id, 'serviceName': ServiceName.SPOTIFY})

    def require_connection(self, user_id: str) -> Dict[str, Any]:
        connection = self.get_connection(user_id)
        if not connection:
            raise NotFound('Spotify is not connected')
        return connection

    def disconnect(self, user_id: str) -> None:
        self.store.delete_item(CONNECTED_SERVICES, {'userId': user_id, 'serviceName': ServiceName.SPOTIFY})

    def _disconnect_token(self, user_id: str, refresh_token: str) -> bool:
        """Delete the connection only if it still holds `refresh_token`."""
        try:
            self.store.table(CONNECTED_SERVICES).delete_item(
                Key={'userId': user_id, 'serviceName': ServiceName.SPOTIFY},
                ConditionExpression='#refreshToken = :refresh',
                ExpressionAttributeNames={'#refreshToken': 'refreshToken'},
                ExpressionAttributeValues={':refresh': refresh_token}
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            raise
        return True


def public_connection(connection: Dict[str, Any]) -> Dict[str, Any]:
    """A connection without its refresh token."""
    return {k: v for k, v in connection.items() if k != 'refreshToken' and v is not None}


def _read_error(error: urllib.error.HTTPError) -> Dict[str, Any]:
    try:
        body = json.loads(error.read().decode('utf-8') or '{}')
        return body if isinstance(body, dict) else {}
    except (ValueError, OSError, AttributeError):
        return {}
