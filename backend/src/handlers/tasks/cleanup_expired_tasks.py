from shared.auth import require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import logger, log_event
from shared.profiles import ProfileService
from shared.s3_utils import get_storage
from shared.sweeper import ExpirationSweeper
from shared.utils import format_response, error_response


def is_api_request(event: dict) -> bool:
    return bool(event.get('httpMethod') or (event.get('requestContext') or {}).get('http'))


def handler(event, context):
    """
    Remove expired tasks with their media, user tasks and submissions.

    Triggered by EventBridge (Scheduled Event) and returns the plain result,
    or by an admin through POST /admin/tasks/cleanup.
    """
    log_event(event)
    store, feed = get_store(), get_feed()
    sweeper = ExpirationSweeper(store, get_storage(), feed)

    if not is_api_request(event):
        logger.info("Running scheduled cleanup of expired tasks")
        try:
            return sweeper.cleanup_expired_tasks()
        except Exception as e:
            logger.error(f"Scheduled cleanup failed: {e}", exc_info=True)
            return {
                'success': False,
                'error': str(e),
                'message': 'Failed to cleanup expired tasks',
            }

    try:
        admin_id = require_user(event)
        ProfileService(store, feed).require_admin(admin_id)
        return format_response(200, sweeper.cleanup_expired_tasks())
    except Exception as e:
        return error_response(e, 'cleaning up expired tasks')
