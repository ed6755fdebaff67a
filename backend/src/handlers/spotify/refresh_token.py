from shared.auth import require_user
from shared.dynamo import get_store
from shared.errors import InvalidGrant, SoundTrumpError
from shared.logging import log_event
from shared.spotify import SpotifyTokenBroker
from shared.utils import format_response, error_response, get_http_method, parse_body


def handler(event, context):
    """
    Refresh the caller's Spotify access token.
    POST /spotify/refresh  {refreshToken?}

    Without refreshToken the stored one is used. Returns {success, expires_in},
    or {error, disconnected: true} with 401 when Spotify rejected the stored
    refresh token and the connection was removed.
    """
    log_event(event)

    if get_http_method(event) not in ('', 'POST'):
        return format_response(405, {'error': 'Method not allowed'})

    try:
        user_id = require_user(event)
        broker = SpotifyTokenBroker(get_store())

        refresh_token = parse_body(event).get('refreshToken')
        if not refresh_token:
            refresh_token = broker.require_connection(user_id).get('refreshToken')

        return format_response(200, broker.refresh(user_id, refresh_token))

    except InvalidGrant as e:
        return format_response(e.status_code, {'error': e.message, 'disconnected': e.disconnected})
    except SoundTrumpError as e:
        return format_response(e.status_code, {'error': e.message})
    except Exception as e:
        return error_response(e, 'refreshing Spotify token')
