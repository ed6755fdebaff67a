"""
Referral codes and the one-time referral bonus.

Each user owns one code. A user can be referred at most once: the
ReferredUser row is keyed by the referred user and written conditionally.
The bonus is credited in a single transaction that flips pointsAwarded from
false to true, so it lands at most once for both sides.
"""
import secrets
import string
import time
from typing import Any, Dict, List

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .config import config
from .dynamo import Store, TransactionCanceled, PROFILES, REFERRALS, REFERRED_USERS
from .errors import NotFound, Unauthenticated, ValidationError
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, Topic
from .profiles import points_credit

CODE_PREFIX = 'ST'
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5


def generate_referral_code() -> str:
    return CODE_PREFIX + ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class ReferralService:

    def __init__(self, store: Store, feed: ChangeFeed, bonus_points: int = None, clock=time.time):
        self.store = store
        self.feed = feed
        self.bonus_points = config.REFERRAL_BONUS_POINTS if bonus_points is None else bonus_points
        self.clock = clock

    def get_referral(self, user_id: str) -> Dict[str, Any]:
        items = self.store.query(REFERRALS, Key('referrerId').eq(user_id), index_name='ReferrerIdIndex')
        return items[0] if items else None

    def get_or_create_referral_code(self, user_id: str) -> str:
        if not user_id:
            raise Unauthenticated()

        existing = self.get_referral(user_id)
        if existing:
            return existing['referralCode']

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_referral_code()
            try:
                self.store.table(REFERRALS).put_item(
                    Item={'referralCode': code, 'referrerId': user_id, 'createdAt': int(self.clock())},
                    ConditionExpression='attribute_not_exists(referralCode)'
                )
            except ClientError as e:
                if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                    raise
                # Code collision, draw another one
                continue
            logger.info(f"Created referral code for user {user_id}")
            return code

        raise ValidationError('Could not allocate a referral code')

    def apply_referral_code(self, user_id: str, code: str) -> Dict[str, Any]:
        """
        Record that `user_id` was referred by the owner of `code` and credit
        the bonus to both users.

        Raises:
            ValidationError: unknown code, own code, or already referred
        """
        if not user_id:
            raise Unauthenticated()

        code = (code or '').strip().upper()
        if not code:
            raise ValidationError('Referral code is required')

        referral = self.store.get_item(REFERRALS, {'referralCode': code})
        if not referral:
            raise ValidationError('Invalid referral code')
        if referral['referrerId'] == user_id:
            raise ValidationError('You cannot use your own referral code')

        row = {
            'referredUserId': user_id,
            'referrerId': referral['referrerId'],
            'referralCode': code,
            'pointsAwarded': False,
            'createdAt': int(self.clock()),
        }
        try:
            self.store.table(REFERRED_USERS).put_item(
                Item=row,
                ConditionExpression='attribute_not_exists(referredUserId)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                raise
            existing = self.store.get_item(REFERRED_USERS, {'referredUserId': user_id})
            if not existing or existing.get('pointsAwarded'):
                raise ValidationError('You have already used a referral code') from e
            # An earlier apply recorded the referral but its credit failed
            logger.info(f"Retrying referral credit for user {user_id}")
            credited = self.credit_referral(user_id)
            if not credited:
                raise ValidationError('You have already used a referral code') from e
            return self._applied(user_id, credited)

        self.feed.publish(Topic.REFERRED_USERS, ChangeType.INSERT,
                          {'referredUserId': user_id}, user_id=referral['referrerId'])

        return self._applied(user_id, self.credit_referral(user_id))

    def _applied(self, user_id: str, credited: int) -> Dict[str, Any]:
        profile = self.store.get_item(PROFILES, {'userId': user_id}) or {}
        return {
            'success': True,
            'message': f"Referral code applied successfully! You've earned {credited} points.",
            'points_earned': credited,
            'total_points': profile.get('points', 0),
        }

    def credit_referral(self, referred_user_id: str) -> int:
        """
        Award the referral bonus to the referrer and the referred user.

        Returns:
            Points credited to each side, 0 when the bonus was already awarded
        """
        row = self.store.get_item(REFERRED_USERS, {'referredUserId': referred_user_id})
        if not row:
            raise NotFound('Referral not found')
        if row.get('pointsAwarded'):
            return 0

        referrer_id = row['referrerId']
        bonus = self.bonus_points
        now = int(self.clock())

        try:
            self.store.transact([
                self.store.update(
                    REFERRED_USERS,
                    {'referredUserId': referred_user_id},
                    'SET #pointsAwarded = :true, #awardedAt = :ts',
                    condition='#pointsAwarded = :false',
                    names={'#pointsAwarded': 'pointsAwarded', '#awardedAt': 'awardedAt'},
                    values={':true': True, ':false': False, ':ts': now}
                ),
                points_credit(self.store, referrer_id, bonus, now),
                points_credit(self.store, referred_user_id, bonus, now),
            ])
        except TransactionCanceled:
            current = self.store.get_item(REFERRED_USERS, {'referredUserId': referred_user_id})
            if current and current.get('pointsAwarded'):
                return 0
            raise NotFound('Profile not found')

        logger.info(f"Referral bonus of {bonus} points credited to {referrer_id} and {referred_user_id}")
        self.feed.publish(Topic.REFERRED_USERS, ChangeType.UPDATE,
                          {'referredUserId': referred_user_id}, user_id=referrer_id)
        for user_id in (referrer_id, referred_user_id):
            self.feed.publish(Topic.PROFILES, ChangeType.UPDATE, {'userId': user_id}, user_id=user_id)
        return bonus

    def list_referred_users(self, user_id: str) -> List[Dict[str, Any]]:
        """Users referred by `user_id`, newest first, with their public name."""
        rows = self.store.query(REFERRED_USERS, Key('referrerId').eq(user_id), index_name='ReferrerIdIndex')
        for row in rows:
            profile = self.store.get_item(PROFILES, {'userId': row['referredUserId']}) or {}
            row['username'] = profile.get('username')
            row['fullName'] = profile.get('fullName')
        rows.sort(key=lambda r: r.get('createdAt', 0), reverse=True)
        return rows

    def referral_stats(self, user_id: str) -> Dict[str, Any]:
        if not user_id:
            raise Unauthenticated()

        referred = self.list_referred_users(user_id)
        awarded = [r for r in referred if r.get('pointsAwarded')]
        return {
            'referralCode': self.get_or_create_referral_code(user_id),
            'totalReferrals': len(referred),
            'pointsEarned': len(awarded) * self.bonus_points,
            'pendingReferrals': len(referred) - len(awarded),
            'referredUsers': referred,
        }
