from shared.auth import require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.rewards import RewardService
from shared.utils import format_response, error_response


def handler(event, context):
    """
    GET /rewards      active rewards, cheapest first
    GET /me/rewards   the current user's redemptions
    """
    try:
        rewards = RewardService(get_store(), get_feed())
        path = event.get('resource') or event.get('path') or event.get('rawPath') or ''

        if path.startswith('/me/'):
            user_id = require_user(event)
            return format_response(200, {'success': True, 'userRewards': rewards.list_user_rewards(user_id)})

        return format_response(200, {'success': True, 'rewards': rewards.list_rewards()})

    except Exception as e:
        return error_response(e, 'listing rewards')
