from shared.auth import get_user_sub
from shared.dynamo import get_store
from shared.events import get_feed
from shared.lifecycle import TaskLifecycle
from shared.logging import logger, log_event
from shared.utils import format_response, error_response, parse_body


def handler(event, context):
    """
    Handler to submit evidence for a manually verified task.
    POST /submissions

    Body:
        user_task_id (or p_user_task_id): the user task being submitted
        screenshot_url (or p_screenshot_url): storage path of the screenshot
        submission_notes (or p_submission_notes): free-text notes
    """
    log_event(event)

    try:
        user_id = get_user_sub(event)
        body = parse_body(event)

        user_task_id = body.get('user_task_id') or body.get('p_user_task_id')
        screenshot = body.get('screenshot_url') or body.get('p_screenshot_url')
        notes = body.get('submission_notes') or body.get('p_submission_notes')

        submission = TaskLifecycle(get_store(), get_feed()).submit(
            user_id,
            user_task_id,
            screenshot_path=screenshot,
            notes=notes
        )

        logger.info(f"Submission {submission['submissionId']} received from {user_id}")
        return format_response(200, {'success': True, 'data': submission})

    except Exception as e:
        return error_response(e, 'creating task submission')
