from shared.auth import get_user_email, require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.logging import log_event
from shared.profiles import ProfileService
from shared.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Handler to complete an automatically verified task and credit its points.
    POST /tasks/{taskId}/complete
    """
    log_event(event)

    try:
        user_id = require_user(event)
        task_id = get_path_param(event, 'taskId') or parse_body(event).get('task_id')
        store, feed = get_store(), get_feed()

        # Points are credited to the profile, which may not exist yet
        email = get_user_email(event) or ''
        ProfileService(store, feed).get_or_create_profile(user_id, username=email.split('@')[0] or None)

        result = TaskLifecycle(store, feed).complete_task(user_id, task_id)

        return format_response(200, {
            'success': result['success'],
            'message': result['message'],
            'points_earned': result.get('points_earned', 0),
        })

    except Exception as e:
        return error_response(e, 'completing task')
