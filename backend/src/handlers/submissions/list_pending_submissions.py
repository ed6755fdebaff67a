from shared.auth import require_user
from shared.catalog import TaskCatalog
from shared.dynamo import get_store
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.s3_utils import get_storage
from shared.utils import format_response, error_response


def handler(event, context):
    """
    Handler for the admin review queue.
    GET /admin/submissions
    """
    try:
        admin_id = require_user(event)
        store, feed = get_store(), get_feed()
        submissions = TaskLifecycle(store, feed).list_pending_submissions(admin_id)

        catalog = TaskCatalog(store, get_storage(), feed)
        for submission in submissions:
            if submission.get('screenshotPath'):
                submission['screenshotUrl'] = catalog.screenshot_url(submission['screenshotPath'])

        return format_response(200, {'success': True, 'submissions': submissions})

    except Exception as e:
        return error_response(e, 'listing pending submissions')
