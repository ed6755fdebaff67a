from shared.auth import get_user_sub
from shared.dynamo import get_store
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.logging import logger, log_event
from shared.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Handler to start a task for the current user.
    POST /tasks/{taskId}/start

    Returns 201 with the new user task (status Pending).
    """
    log_event(event)

    try:
        user_id = get_user_sub(event)
        task_id = get_path_param(event, 'taskId') or parse_body(event).get('task_id')

        lifecycle = TaskLifecycle(get_store(), get_feed())
        user_task = lifecycle.start(user_id, task_id)

        logger.info(f"Task {task_id} started by {user_id}")
        return format_response(201, {'success': True, 'data': user_task})

    except Exception as e:
        return error_response(e, 'starting task')
