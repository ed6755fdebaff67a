from shared.auth import get_user_email, require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import logger, log_event
from shared.profiles import ProfileService
from shared.referrals import ReferralService
from shared.utils import format_response, error_response, parse_body


def handler(event, context):
    """
    Handler to apply another user's referral code.
    POST /referrals/apply  {referral_code}
    """
    log_event(event)

    try:
        user_id = require_user(event)
        store, feed = get_store(), get_feed()

        # The bonus is credited to both profiles, so make sure ours exists
        email = get_user_email(event) or ''
        ProfileService(store, feed).get_or_create_profile(user_id, username=email.split('@')[0] or None)

        result = ReferralService(store, feed).apply_referral_code(user_id, parse_body(event).get('referral_code'))
        logger.info(f"User {user_id} applied a referral code (+{result['points_earned']} points)")
        return format_response(200, result)

    except Exception as e:
        return error_response(e, 'applying referral code')
