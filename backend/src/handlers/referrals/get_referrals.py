from shared.auth import get_user_email, require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.profiles import ProfileService
from shared.referrals import ReferralService
from shared.utils import format_response, error_response


def handler(event, context):
    """
    Handler for the current user's referral code and referral stats.
    GET /me/referrals
    """
    try:
        user_id = require_user(event)
        store, feed = get_store(), get_feed()

        # A code holder must have a profile for the referral bonus to land
        email = get_user_email(event) or ''
        ProfileService(store, feed).get_or_create_profile(user_id, username=email.split('@')[0] or None)

        stats = ReferralService(store, feed).referral_stats(user_id)
        return format_response(200, {'success': True, **stats})
    except Exception as e:
        return error_response(e, 'loading referrals')
