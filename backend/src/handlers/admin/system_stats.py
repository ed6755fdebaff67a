from shared.auth import require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.profiles import ProfileService
from shared.utils import format_response, error_response


def handler(event, context):
    """GET /admin/stats"""
    try:
        admin_id = require_user(event)
        profiles = ProfileService(get_store(), get_feed())
        profiles.require_admin(admin_id)
        return format_response(200, {'success': True, 'stats': profiles.system_stats()})
    except Exception as e:
        return error_response(e, 'loading system stats')
