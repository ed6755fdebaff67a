"""
Expiration sweeper.

Deletes tasks whose expiresAt has passed, together with their stored media
(task image, submission screenshots) and their dependent user tasks and
submissions. Storage is cleaned first and best-effort: a StorageError is
logged and the rows are deleted anyway.
"""
import time
from typing import Any, Dict

from boto3.dynamodb.conditions import Attr, Key

from .config import config
from .dynamo import Store, SUBMISSIONS, TASKS, USER_TASKS
from .errors import StorageError
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, Topic
from .s3_utils import MediaStorage


class ExpirationSweeper:
    """Removes expired tasks and everything that hangs off them."""

    def __init__(self, store: Store, storage: MediaStorage, feed: ChangeFeed, clock=time.time):
        self.store = store
        self.storage = storage
        self.feed = feed
        self.clock = clock

    def cleanup_expired_tasks(self) -> Dict[str, Any]:
        """
        Delete every task with expiresAt in the past.

        A failure on one task is logged and the sweep moves on to the next.

        Returns:
            {success, message, tasksRemoved, filesDeleted}
        """
        now = int(self.clock())
        logger.info("Starting cleanup of expired tasks...")

        expired_tasks = self.store.scan(TASKS, Attr('expiresAt').lt(now))
        logger.info(f"Found {len(expired_tasks)} expired tasks")

        tasks_removed = 0
        files_deleted = 0

        for task in expired_tasks:
            try:
                files_deleted += self.purge_task(task)
                tasks_removed += 1
            except Exception as e:
                logger.error(f"Error processing task {task.get('taskId')}: {e}")

        message = f"Cleanup completed: {tasks_removed} expired tasks removed, {files_deleted} files deleted"
        logger.info(message)

        return {
            'success': True,
            'message': message,
            'tasksRemoved': tasks_removed,
            'filesDeleted': files_deleted,
        }

    def purge_task(self, task: Dict[str, Any]) -> int:
        """
        Delete one task: media first (best-effort), then submissions, user
        tasks and finally the task row.

        Returns:
            Number of storage objects deleted
        """
        task_id = task['taskId']
        files_deleted = 0

        if task.get('imagePath'):
            files_deleted += self._delete_media(config.TASK_IMAGES_BUCKET, [task['imagePath']])

        submissions = self.store.query(SUBMISSIONS, Key('taskId').eq(task_id), index_name='TaskIdIndex')
        screenshots = [s['screenshotPath'] for s in submissions if s.get('screenshotPath')]
        if screenshots:
            files_deleted += self._delete_media(config.TASK_SCREENSHOTS_BUCKET, screenshots)

        user_tasks = self.store.query(USER_TASKS, Key('taskId').eq(task_id), index_name='TaskIdIndex')

        self.store.batch_delete(SUBMISSIONS, [{'submissionId': s['submissionId']} for s in submissions])
        self.store.batch_delete(USER_TASKS, [{'userId': ut['userId'], 'taskId': task_id} for ut in user_tasks])
        self.store.delete_item(TASKS, {'taskId': task_id})

        logger.info(
            f"Cleaned up task {task_id}: {len(user_tasks)} user tasks, "
            f"{len(submissions)} submissions, {files_deleted} files"
        )
        self.feed.publish(Topic.TASKS, ChangeType.DELETE, {'taskId': task_id})
        for user_task in user_tasks:
            self.feed.publish(Topic.USER_TASKS, ChangeType.DELETE,
                              {'userId': user_task['userId'], 'taskId': task_id},
                              user_id=user_task['userId'])
        return files_deleted

    def _delete_media(self, bucket: str, paths) -> int:
        try:
            return self.storage.delete_objects(bucket, paths)
        except StorageError as e:
            logger.warning(f"Storage cleanup failed (continuing with row deletion): {e.message}")
            return 0
