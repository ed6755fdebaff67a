from shared.catalog import TaskCatalog
from shared.dynamo import get_store
from shared.events import get_feed
from shared.s3_utils import get_storage
from shared.utils import format_response, error_response


def handler(event, context):
    """GET /tasks/categories"""
    try:
        catalog = TaskCatalog(get_store(), get_storage(), get_feed())
        return format_response(200, {'success': True, 'categories': catalog.list_categories()})
    except Exception as e:
        return error_response(e, 'listing categories')
