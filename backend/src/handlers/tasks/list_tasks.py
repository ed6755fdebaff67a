from shared.catalog import TaskCatalog
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import log_event
from shared.s3_utils import get_storage
from shared.utils import format_response, error_response


def handler(event, context):
    """
    Handler to list the tasks users can start.
    GET /tasks
    """
    log_event(event)

    try:
        catalog = TaskCatalog(get_store(), get_storage(), get_feed())
        tasks = catalog.list_tasks()
        return format_response(200, {'success': True, 'tasks': tasks})

    except Exception as e:
        return error_response(e, 'listing tasks')
