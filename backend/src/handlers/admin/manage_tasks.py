from shared.auth import require_user
from shared.catalog import TaskCatalog
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import logger, log_event
from shared.profiles import ProfileService
from shared.s3_utils import get_storage
from shared.utils import format_response, error_response, get_http_method, get_path_param, parse_body


def handler(event, context):
    """
    Admin task management.

    POST   /admin/tasks                   create a task (body: task fields, duration_hours?)
    POST   /admin/tasks/categories        create a category (body: name, description?)
    PUT    /admin/tasks/{taskId}          update task fields
    DELETE /admin/tasks/{taskId}          delete a task with its media and dependents
    """
    log_event(event)

    try:
        admin_id = require_user(event)
        store, feed = get_store(), get_feed()
        ProfileService(store, feed).require_admin(admin_id)

        catalog = TaskCatalog(store, get_storage(), feed)
        method = get_http_method(event)
        task_id = get_path_param(event, 'taskId')
        body = parse_body(event)

        if method == 'POST' and (event.get('resource') or event.get('path') or '').endswith('/categories'):
            category = catalog.create_category(body.get('name'), body.get('description'))
            return format_response(201, {'success': True, 'category': category})

        if method == 'POST':
            task = catalog.create_task(body, duration_hours=body.get('duration_hours'))
            logger.info(f"Admin {admin_id} created task {task['taskId']}")
            return format_response(201, {'success': True, 'task': task})

        if method == 'PUT':
            task = catalog.update_task(task_id or body.get('taskId'), body)
            return format_response(200, {'success': True, 'task': task})

        if method == 'DELETE':
            result = catalog.delete_task(task_id or body.get('taskId'))
            logger.info(f"Admin {admin_id} deleted task {result['taskId']}")
            return format_response(200, result)

        return format_response(405, {'success': False, 'error': 'Method not allowed'})

    except Exception as e:
        return error_response(e, 'managing tasks')
