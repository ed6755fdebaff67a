from shared.auth import require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.utils import format_response, error_response


def handler(event, context):
    """
    Handler to list the current user's tasks.
    GET /me/tasks
    """
    try:
        user_id = require_user(event)
        user_tasks = TaskLifecycle(get_store(), get_feed()).list_user_tasks(user_id)
        return format_response(200, {'success': True, 'userTasks': user_tasks})
    except Exception as e:
        return error_response(e, 'listing user tasks')
