from shared.auth import require_user
from shared.dynamo import get_store
from shared.errors import NotFound
from shared.models import ServiceName
from shared.spotify import SpotifyTokenBroker, public_connection
from shared.utils import format_response, error_response, get_http_method, get_path_param


def handler(event, context):
    """
    GET    /me/services/{serviceName}   the stored connection (without the refresh token)
    DELETE /me/services/{serviceName}   disconnect the service
    """
    try:
        user_id = require_user(event)
        service = (get_path_param(event, 'serviceName') or ServiceName.SPOTIFY).lower()
        if service != ServiceName.SPOTIFY:
            raise NotFound(f'Unknown service: {service}')

        broker = SpotifyTokenBroker(get_store())

        if get_http_method(event) == 'DELETE':
            broker.disconnect(user_id)
            return format_response(200, {'success': True, 'connected': False})

        connection = broker.get_connection(user_id)
        return format_response(200, {
            'success': True,
            'connected': connection is not None,
            'connection': public_connection(connection) if connection else None,
        })

    except Exception as e:
        return error_response(e, 'loading connected service')
