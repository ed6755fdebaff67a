from shared.dynamo import get_store
from shared.errors import ValidationError
from shared.events import get_feed
from shared.profiles import ProfileService
from shared.utils import format_response, error_response, get_query_param


def handler(event, context):
    """
    Handler to rank users by points.
    GET /leaderboard?limit=N
    """
    try:
        limit = get_query_param(event, 'limit')
        try:
            limit = int(limit) if limit else None
        except ValueError:
            raise ValidationError('limit must be an integer')
        if limit is not None and limit <= 0:
            raise ValidationError('limit must be positive')

        entries = ProfileService(get_store(), get_feed()).leaderboard(limit)
        return format_response(200, {'success': True, 'leaderboard': entries})

    except Exception as e:
        return error_response(e, 'loading leaderboard')
