"""
Task catalog: admin task CRUD, categories and media URLs.
"""
import time
import uuid
from typing import Any, Dict, List

from boto3.dynamodb.conditions import Attr

from .config import config
from .dynamo import Store, TASKS, TASK_CATEGORIES
from .errors import NotFound, ValidationError
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, Difficulty, Topic, VerificationType
from .s3_utils import MediaStorage
from .sweeper import ExpirationSweeper

# Fields an admin may set on update
UPDATABLE_FIELDS = (
    'title', 'description', 'points', 'difficulty', 'verificationType', 'active',
    'categoryId', 'instructions', 'estimatedTime', 'redirectUrl', 'requiredMedia',
    'imagePath', 'expiresAt',
)


def parse_points(value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError('points must be a positive integer')
    try:
        points = int(value)
    except (TypeError, ValueError):
        raise ValidationError('points must be a positive integer')
    if points <= 0:
        raise ValidationError('points must be a positive integer')
    return points


def validate_task_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalize task fields present in `fields`."""
    clean = dict(fields)

    for name in ('title', 'description'):
        if name in clean:
            value = (clean[name] or '').strip() if isinstance(clean[name], str) else ''
            if not value:
                raise ValidationError(f'{name} is required')
            clean[name] = value

    if 'points' in clean:
        clean['points'] = parse_points(clean['points'])

    if 'difficulty' in clean and clean['difficulty'] not in Difficulty.ALL:
        raise ValidationError(f"difficulty must be one of {', '.join(Difficulty.ALL)}")

    if 'verificationType' in clean and clean['verificationType'] not in VerificationType.ALL:
        raise ValidationError(f"verificationType must be one of {', '.join(VerificationType.ALL)}")

    for name in ('active', 'requiredMedia'):
        if name in clean:
            clean[name] = bool(clean[name])

    if 'expiresAt' in clean:
        try:
            clean['expiresAt'] = int(clean['expiresAt'])
        except (TypeError, ValueError):
            raise ValidationError('expiresAt must be an epoch timestamp')

    return clean


class TaskCatalog:
    """Admin-side task management and the public task list."""

    def __init__(self, store: Store, storage: MediaStorage, feed: ChangeFeed, clock=time.time):
        self.store = store
        self.storage = storage
        self.feed = feed
        self.clock = clock

    def image_url(self, path: str) -> str:
        return self.storage.public_url(config.TASK_IMAGES_BUCKET, path)

    def screenshot_url(self, path: str) -> str:
        return self.storage.public_url(config.TASK_SCREENSHOTS_BUCKET, path)

    def list_tasks(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        """Unexpired tasks (active only, unless asked otherwise), newest first."""
        now = int(self.clock())
        condition = Attr('expiresAt').gt(now)
        if not include_inactive:
            condition = condition & Attr('active').eq(True)

        tasks = self.store.scan(TASKS, condition)
        categories = {c['categoryId']: c for c in self.list_categories()}
        for task in tasks:
            task['category'] = categories.get(task.get('categoryId'))
            task['imageUrl'] = self.image_url(task.get('imagePath'))

        tasks.sort(key=lambda t: t.get('createdAt', 0), reverse=True)
        return tasks

    def list_categories(self) -> List[Dict[str, Any]]:
        categories = self.store.scan(TASK_CATEGORIES)
        categories.sort(key=lambda c: c.get('name', '').lower())
        return categories

    def create_category(self, name: str, description: str = None) -> Dict[str, Any]:
        name = (name or '').strip()
        if not name:
            raise ValidationError('name is required')
        category = {
            'categoryId': str(uuid.uuid4()),
            'name': name,
            'description': description,
            'createdAt': int(self.clock()),
        }
        self.store.put_item(TASK_CATEGORIES, category)
        return {k: v for k, v in category.items() if v is not None}

    def create_task(self, data: Dict[str, Any], duration_hours: int = None) -> Dict[str, Any]:
        """
        Create a task that expires `duration_hours` from now.

        Args:
            data: title, description, points, difficulty, verificationType and
                optional categoryId, instructions, estimatedTime, redirectUrl,
                requiredMedia, imagePath, active
            duration_hours: Lifetime in hours (defaults to DEFAULT_TASK_DURATION_HOURS)
        """
        for name in ('title', 'description', 'points', 'difficulty', 'verificationType'):
            if data.get(name) in (None, ''):
                raise ValidationError(f'{name} is required')

        fields = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and k != 'expiresAt'}
        fields = validate_task_fields(fields)

        duration = config.DEFAULT_TASK_DURATION_HOURS if duration_hours in (None, '') else duration_hours
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ValidationError('duration must be a number of hours')
        if duration <= 0:
            raise ValidationError('duration must be positive')

        if fields.get('categoryId') and not self.store.get_item(TASK_CATEGORIES, {'categoryId': fields['categoryId']}):
            raise ValidationError('Unknown category')

        now = int(self.clock())
        task = {
            'taskId': str(uuid.uuid4()),
            'active': True,
            'requiredMedia': fields.get('verificationType') == VerificationType.MANUAL,
            **fields,
            'expiresAt': now + int(duration * 3600),
            'createdAt': now,
            'updatedAt': now,
        }
        self.store.put_item(TASKS, task)

        logger.info(f"Created task {task['taskId']} ({task['title']}, {task['points']} points)")
        self.feed.publish(Topic.TASKS, ChangeType.INSERT, {'taskId': task['taskId']})
        return {k: v for k, v in task.items() if v is not None}

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in (updates or {}).items() if k in UPDATABLE_FIELDS}
        if not fields:
            raise ValidationError('No updatable fields provided')
        fields = validate_task_fields(fields)

        if not self.store.get_item(TASKS, {'taskId': task_id}):
            raise NotFound('Task not found')

        names = {f'#{k}': k for k in fields}
        values = {f':{k}': v for k, v in fields.items()}
        values[':ts'] = int(self.clock())
        assignments = ', '.join(f'#{k} = :{k}' for k in fields)
        names['#updatedAt'] = 'updatedAt'

        task = self.store.update_item(
            TASKS,
            {'taskId': task_id},
            f'SET {assignments}, #updatedAt = :ts',
            expression_values=values,
            expression_names=names,
        )
        self.feed.publish(Topic.TASKS, ChangeType.UPDATE, {'taskId': task_id})
        return task

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        """Delete a task with its media, user tasks and submissions."""
        task = self.store.get_item(TASKS, {'taskId': task_id}) if task_id else None
        if not task:
            raise NotFound('Task not found')

        files_deleted = ExpirationSweeper(self.store, self.storage, self.feed, clock=self.clock).purge_task(task)
        return {'success': True, 'taskId': task_id, 'filesDeleted': files_deleted}
