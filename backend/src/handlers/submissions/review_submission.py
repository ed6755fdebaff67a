from shared.auth import require_user
from shared.dynamo import get_store, SUBMISSIONS
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.logging import log_event
from shared.profiles import ProfileService
from shared.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Handler for an admin decision on a manual submission.
    POST /admin/submissions/{submissionId}/review

    Body: {decision: 'approve' | 'reject', admin_notes?}
    """
    log_event(event)

    try:
        admin_id = require_user(event)
        body = parse_body(event)
        submission_id = get_path_param(event, 'submissionId') or body.get('submission_id')
        store, feed = get_store(), get_feed()
        profiles = ProfileService(store, feed)
        profiles.require_admin(admin_id)

        # Approval credits the submitter, whose profile may not exist yet
        submission = store.get_item(SUBMISSIONS, {'submissionId': submission_id}) if submission_id else None
        if submission:
            profiles.get_or_create_profile(submission['userId'])

        result = TaskLifecycle(store, feed, profiles=profiles).review(
            submission_id,
            body.get('decision'),
            admin_id,
            admin_notes=body.get('admin_notes')
        )
        return format_response(200, result)

    except Exception as e:
        return error_response(e, 'reviewing submission')
