from shared.auth import get_user_email, require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import log_event
from shared.profiles import ProfileService
from shared.utils import format_response, error_response, get_http_method, parse_body


def handler(event, context):
    """
    Handler for the current user's profile.
    GET /me/profile   returns the profile, creating it on first access
    PUT /me/profile   updates username, fullName, avatarUrl or initials
    """
    log_event(event)

    try:
        user_id = require_user(event)
        profiles = ProfileService(get_store(), get_feed())

        email = get_user_email(event) or ''
        profile = profiles.get_or_create_profile(user_id, username=email.split('@')[0] or None)

        if get_http_method(event) == 'PUT':
            profile = profiles.update_own_profile(user_id, parse_body(event))

        return format_response(200, {'success': True, 'profile': profile})

    except Exception as e:
        return error_response(e, 'loading profile')
