"""
Reward catalog and point redemption.
"""
import time
import uuid
from typing import Any, Dict, List

from boto3.dynamodb.conditions import Attr, Key

from .dynamo import Store, TransactionCanceled, PROFILES, REWARDS, USER_REWARDS
from .errors import InsufficientPoints, NotFound, Unauthenticated, ValidationError
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, Topic, UserRewardStatus

REWARD_FIELDS = ('name', 'description', 'pointsCost', 'quantity', 'active', 'imageUrl', 'expiresAt')


def _non_negative_int(name: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')
    if number != value and not isinstance(value, str):
        raise ValidationError(f'{name} must be an integer')
    if number < minimum:
        raise ValidationError(f'{name} must be at least {minimum}')
    return number


def validate_reward_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    clean = dict(fields)
    if 'name' in clean:
        name = clean['name'].strip() if isinstance(clean['name'], str) else ''
        if not name:
            raise ValidationError('name is required')
        clean['name'] = name
    if 'pointsCost' in clean:
        clean['pointsCost'] = _non_negative_int('pointsCost', clean['pointsCost'], minimum=1)
    if clean.get('quantity') is not None:
        clean['quantity'] = _non_negative_int('quantity', clean['quantity'])
    if clean.get('expiresAt') is not None:
        clean['expiresAt'] = _non_negative_int('expiresAt', clean['expiresAt'])
    if 'active' in clean:
        clean['active'] = bool(clean['active'])
    return clean


def is_redeemable(reward: Dict[str, Any], now: int) -> bool:
    if not reward.get('active'):
        return False
    if 'quantity' in reward and reward['quantity'] is not None and reward['quantity'] <= 0:
        return False
    if reward.get('expiresAt') and reward['expiresAt'] <= now:
        return False
    return True


class RewardService:
    """Reward listing, admin CRUD and redemption."""

    def __init__(self, store: Store, feed: ChangeFeed, clock=time.time):
        self.store = store
        self.feed = feed
        self.clock = clock

    def get_reward(self, reward_id: str) -> Dict[str, Any]:
        reward = self.store.get_item(REWARDS, {'rewardId': reward_id}) if reward_id else None
        if not reward:
            raise NotFound('Reward not found')
        return reward

    def list_rewards(self) -> List[Dict[str, Any]]:
        """Active rewards, cheapest first."""
        rewards = self.store.scan(REWARDS, Attr('active').eq(True))
        rewards.sort(key=lambda r: r.get('pointsCost', 0))
        return rewards

    def list_user_rewards(self, user_id: str) -> List[Dict[str, Any]]:
        """The user's redemptions, newest first, with the reward attached."""
        if not user_id:
            raise Unauthenticated()
        items = self.store.query(USER_REWARDS, Key('userId').eq(user_id), index_name='UserIdIndex')
        rewards = {}
        for item in items:
            reward_id = item['rewardId']
            if reward_id not in rewards:
                rewards[reward_id] = self.store.get_item(REWARDS, {'rewardId': reward_id})
            item['reward'] = rewards[reward_id]
        items.sort(key=lambda i: i.get('redeemedAt', 0), reverse=True)
        return items

    def create_reward(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for name in ('name', 'pointsCost'):
            if data.get(name) in (None, ''):
                raise ValidationError(f'{name} is required')

        fields = validate_reward_fields({k: v for k, v in data.items() if k in REWARD_FIELDS})
        now = int(self.clock())
        reward = {
            'rewardId': str(uuid.uuid4()),
            'description': '',
            **fields,
            'active': True,
            'createdAt': now,
            'updatedAt': now,
        }
        self.store.put_item(REWARDS, reward)
        logger.info(f"Created reward {reward['rewardId']} ({reward['name']}, {reward['pointsCost']} points)")
        return {k: v for k, v in reward.items() if v is not None}

    def update_reward(self, reward_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in (updates or {}).items() if k in REWARD_FIELDS}
        if not fields:
            raise ValidationError('No updatable fields provided')
        fields = validate_reward_fields(fields)
        self.get_reward(reward_id)

        # A None value clears the attribute (e.g. unlimited stock)
        to_set = {k: v for k, v in fields.items() if v is not None}
        to_remove = [k for k, v in fields.items() if v is None]

        names = {f'#{k}': k for k in fields}
        names['#updatedAt'] = 'updatedAt'
        values = {f':{k}': v for k, v in to_set.items()}
        values[':ts'] = int(self.clock())

        expression = 'SET ' + ', '.join([f'#{k} = :{k}' for k in to_set] + ['#updatedAt = :ts'])
        if to_remove:
            expression += ' REMOVE ' + ', '.join(f'#{k}' for k in to_remove)

        return self.store.update_item(
            REWARDS,
            {'rewardId': reward_id},
            expression,
            expression_values=values,
            expression_names=names,
        )

    def delete_reward(self, reward_id: str) -> Dict[str, Any]:
        self.get_reward(reward_id)
        self.store.delete_item(REWARDS, {'rewardId': reward_id})
        logger.info(f"Deleted reward {reward_id}")
        return {'success': True, 'rewardId': reward_id}

    def redeem_reward(self, user_id: str, reward_id: str) -> Dict[str, Any]:
        """
        Spend points on a reward.

        The balance debit, stock decrement and UserReward insert run as one
        transaction; the balance condition keeps points from going negative.

        Raises:
            NotFound: unknown reward or profile
            ValidationError: reward inactive, expired or out of stock
            InsufficientPoints: balance lower than the reward cost
        """
        if not user_id:
            raise Unauthenticated()

        reward = self.get_reward(reward_id)
        now = int(self.clock())
        if not is_redeemable(reward, now):
            raise ValidationError('Reward is not available')

        profile = self.store.get_item(PROFILES, {'userId': user_id})
        if not profile:
            raise NotFound('Profile not found')

        cost = int(reward['pointsCost'])
        if profile.get('points', 0) < cost:
            raise InsufficientPoints()

        if reward.get('quantity') is not None:
            reward_entry = self.store.update(
                REWARDS,
                {'rewardId': reward_id},
                'SET #quantity = #quantity - :one',
                condition='#active = :true AND #quantity > :zero',
                names={'#quantity': 'quantity', '#active': 'active'},
                values={':one': 1, ':zero': 0, ':true': True}
            )
        else:
            reward_entry = self.store.condition_check(
                REWARDS,
                {'rewardId': reward_id},
                '#active = :true AND attribute_not_exists(#quantity)',
                names={'#active': 'active', '#quantity': 'quantity'},
                values={':true': True}
            )

        user_reward = {
            'userRewardId': str(uuid.uuid4()),
            'userId': user_id,
            'rewardId': reward_id,
            'pointsSpent': cost,
            'status': UserRewardStatus.PENDING,
            'redeemedAt': now,
        }

        try:
            self.store.transact([
                self.store.update(
                    PROFILES,
                    {'userId': user_id},
                    'SET #points = #points - :cost, #updatedAt = :ts',
                    condition='attribute_exists(#userId) AND #points >= :cost',
                    names={'#points': 'points', '#updatedAt': 'updatedAt', '#userId': 'userId'},
                    values={':cost': cost, ':ts': now}
                ),
                reward_entry,
                self.store.put(USER_REWARDS, user_reward),
            ])
        except TransactionCanceled:
            current = self.store.get_item(REWARDS, {'rewardId': reward_id})
            if not current or not is_redeemable(current, now):
                raise ValidationError('Reward is not available')
            raise InsufficientPoints()

        logger.info(f"User {user_id} redeemed reward {reward_id} for {cost} points")
        self.feed.publish(Topic.USER_REWARDS, ChangeType.INSERT,
                          {'userRewardId': user_reward['userRewardId']}, user_id=user_id)
        self.feed.publish(Topic.PROFILES, ChangeType.UPDATE, {'userId': user_id}, user_id=user_id)

        updated = self.store.get_item(PROFILES, {'userId': user_id}) or {}
        return {
            'success': True,
            'message': f"Successfully redeemed {reward['name']}",
            'userReward': user_reward,
            'remaining_points': updated.get('points', 0),
        }
