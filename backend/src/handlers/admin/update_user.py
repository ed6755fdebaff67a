from shared.auth import require_user
from shared.dynamo import get_store
from shared.errors import ValidationError
from shared.events import get_feed
from shared.logging import logger, log_event
from shared.profiles import ProfileService
from shared.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Handler for admin changes to a user's role, status or tier.
    PUT /admin/users/{userId}

    Body: any of {role, status, tier}
    """
    log_event(event)

    try:
        admin_id = require_user(event)
        profiles = ProfileService(get_store(), get_feed())
        profiles.require_admin(admin_id)

        user_id = get_path_param(event, 'userId')
        body = parse_body(event)
        if not any(field in body for field in ('role', 'status', 'tier')):
            raise ValidationError('Provide at least one of role, status or tier')

        profile = None
        if 'role' in body:
            profile = profiles.set_role(user_id, body['role'])
        if 'status' in body:
            profile = profiles.set_status(user_id, body['status'])
        if 'tier' in body:
            profile = profiles.set_tier(user_id, body['tier'])

        logger.info(f"Admin {admin_id} updated user {user_id}")
        return format_response(200, {'success': True, 'profile': profile})

    except Exception as e:
        return error_response(e, 'updating user')
