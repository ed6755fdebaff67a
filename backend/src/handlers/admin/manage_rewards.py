from shared.auth import require_user
from shared.dynamo import get_store
from shared.events import get_feed
from shared.logging import log_event
from shared.profiles import ProfileService
from shared.rewards import RewardService
from shared.utils import format_response, error_response, get_http_method, get_path_param, parse_body


def handler(event, context):
    """
    Admin reward management.
    POST /admin/rewards, PUT /admin/rewards/{rewardId}, DELETE /admin/rewards/{rewardId}
    """
    log_event(event)

    try:
        admin_id = require_user(event)
        store, feed = get_store(), get_feed()
        ProfileService(store, feed).require_admin(admin_id)

        rewards = RewardService(store, feed)
        method = get_http_method(event)
        body = parse_body(event)
        reward_id = get_path_param(event, 'rewardId') or body.get('rewardId')

        if method == 'POST':
            return format_response(201, {'success': True, 'reward': rewards.create_reward(body)})
        if method == 'PUT':
            return format_response(200, {'success': True, 'reward': rewards.update_reward(reward_id, body)})
        if method == 'DELETE':
            return format_response(200, rewards.delete_reward(reward_id))

        return format_response(405, {'success': False, 'error': 'Method not allowed'})

    except Exception as e:
        return error_response(e, 'managing rewards')
