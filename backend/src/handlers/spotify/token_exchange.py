from shared.auth import get_user_sub
from shared.dynamo import get_store
from shared.logging import log_event
from shared.spotify import SpotifyTokenBroker
from shared.utils import format_response, error_response, get_http_method, parse_body


def handler(event, context):
    """
    Exchange a Spotify authorization code for tokens.
    POST /spotify/token  {code, redirect_uri}

    When the caller is authenticated the tokens are also stored as the
    user's Spotify connection. The token payload is returned to the client.
    """
    log_event(event)

    if get_http_method(event) not in ('', 'POST'):
        return format_response(405, {'error': 'Method not allowed'})

    try:
        body = parse_body(event)
        broker = SpotifyTokenBroker(get_store())
        token = broker.exchange_code(body.get('code'), body.get('redirect_uri'))

        user_id = get_user_sub(event)
        if user_id:
            broker.connect(user_id, token, service_user_id=body.get('service_user_id'))

        return format_response(200, token)

    except Exception as e:
        return error_response(e, 'exchanging Spotify code')
