"""
Profiles, leaderboard and admin user management.
"""
import time
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from .config import config
from .dynamo import Store, PROFILES, TASKS, USER_REWARDS
from .errors import Forbidden, NotFound, ValidationError
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, ProfileStatus, Role, Tier, Topic

# Fields a user may change on their own profile
EDITABLE_FIELDS = ('username', 'fullName', 'avatarUrl', 'initials')

PUBLIC_FIELDS = ('userId', 'username', 'fullName', 'avatarUrl', 'initials', 'points', 'tier', 'status')


def make_initials(name: str) -> str:
    parts = [p for p in (name or '').replace('@', ' ').split() if p]
    return ''.join(p[0] for p in parts[:2]).upper() or 'U'


class ProfileService:
    """Reads and admin mutations on user profiles."""

    def __init__(self, store: Store, feed: ChangeFeed, clock=time.time):
        self.store = store
        self.feed = feed
        self.clock = clock

    def get_profile(self, user_id: str) -> Dict[str, Any]:
        profile = self.store.get_item(PROFILES, {'userId': user_id})
        if not profile:
            raise NotFound('Profile not found')
        return profile

    def get_or_create_profile(self, user_id: str, username: str = None) -> Dict[str, Any]:
        """Return the caller's profile, creating the default one on first access."""
        profile = self.store.get_item(PROFILES, {'userId': user_id})
        if profile:
            return profile

        now = int(self.clock())
        profile = {
            'userId': user_id,
            'username': username,
            'initials': make_initials(username or ''),
            'points': 0,
            'tier': Tier.FREE,
            'status': ProfileStatus.NORMAL,
            'role': Role.USER,
            'createdAt': now,
            'updatedAt': now,
        }
        try:
            self.store.table(PROFILES).put_item(
                Item={k: v for k, v in profile.items() if v is not None},
                ConditionExpression='attribute_not_exists(userId)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                raise
            # Created concurrently by another request
            return self.store.get_item(PROFILES, {'userId': user_id})

        logger.info(f"Created profile for user {user_id}")
        self.feed.publish(Topic.PROFILES, ChangeType.INSERT, {'userId': user_id}, user_id=user_id)
        return {k: v for k, v in profile.items() if v is not None}

    def update_own_profile(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in (updates or {}).items() if k in EDITABLE_FIELDS}
        if not fields:
            raise ValidationError(f"Nothing to update; editable fields: {', '.join(EDITABLE_FIELDS)}")
        return self._set_fields(user_id, fields)

    def is_admin(self, user_id: str) -> bool:
        if not user_id:
            return False
        profile = self.store.get_item(PROFILES, {'userId': user_id})
        return bool(profile) and profile.get('role') == Role.ADMIN

    def require_admin(self, user_id: str) -> None:
        if not self.is_admin(user_id):
            raise Forbidden()

    def set_role(self, user_id: str, role: str) -> Dict[str, Any]:
        if role not in Role.ALL:
            raise ValidationError(f"Invalid role: {role}")
        return self._set_fields(user_id, {'role': role})

    def set_status(self, user_id: str, status: str) -> Dict[str, Any]:
        if status not in ProfileStatus.ALL:
            raise ValidationError(f"Invalid status: {status}")
        return self._set_fields(user_id, {'status': status})

    def set_tier(self, user_id: str, tier: str) -> Dict[str, Any]:
        if tier not in Tier.ALL:
            raise ValidationError(f"Invalid tier: {tier}")
        return self._set_fields(user_id, {'tier': tier})

    def leaderboard(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Profiles ranked by points (highest first) with a 1-based position."""
        limit = limit or config.LEADERBOARD_LIMIT
        profiles = self.store.scan(PROFILES)
        profiles.sort(key=lambda p: (-p.get('points', 0), p.get('createdAt', 0)))

        return [
            {**{k: p.get(k) for k in PUBLIC_FIELDS}, 'position': index + 1}
            for index, p in enumerate(profiles[:limit])
        ]

    def system_stats(self) -> Dict[str, int]:
        profiles = self.store.scan(PROFILES)
        return {
            'totalUsers': len(profiles),
            'totalTasks': self.store.count(TASKS),
            'totalRewards': self.store.count(USER_REWARDS),
            'totalPoints': sum(p.get('points', 0) for p in profiles),
        }

    def _set_fields(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        names = {f'#{k}': k for k in fields}
        values = {f':{k}': v for k, v in fields.items()}
        values[':ts'] = int(self.clock())
        assignments = ', '.join(f'#{k} = :{k}' for k in fields)

        try:
            profile = self.store.update_item(
                PROFILES,
                {'userId': user_id},
                f'SET {assignments}, updatedAt = :ts',
                expression_values=values,
                expression_names=names,
                condition='attribute_exists(userId)',
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise NotFound('Profile not found') from e
            raise

        self.feed.publish(Topic.PROFILES, ChangeType.UPDATE, {'userId': user_id}, user_id=user_id)
        return profile


def points_credit(store: Store, user_id: str, points: int, now: int) -> Dict[str, Any]:
    """Transaction entry adding points to an existing profile."""
    return store.update(
        PROFILES,
        {'userId': user_id},
        'SET #updatedAt = :ts ADD #points :points',
        condition='attribute_exists(#userId)',
        names={'#updatedAt': 'updatedAt', '#points': 'points', '#userId': 'userId'},
        values={':ts': now, ':points': points}
    )
