from shared.auth import require_user
from shared.dynamo import get_store
from shared.errors import ValidationError
from shared.events import get_feed
from shared.logging import log_event
from shared.rewards import RewardService
from shared.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Handler to spend points on a reward.
    POST /rewards/{rewardId}/redeem
    """
    log_event(event)

    try:
        user_id = require_user(event)
        reward_id = get_path_param(event, 'rewardId') or parse_body(event).get('reward_id')
        if not reward_id:
            raise ValidationError('Reward ID is required')

        result = RewardService(get_store(), get_feed()).redeem_reward(user_id, reward_id)
        return format_response(200, result)

    except Exception as e:
        return error_response(e, 'redeeming reward')
