"""
Task lifecycle engine.

State machine per (user, task):

    NONE → Pending → Submitted → Completed | Rejected     (Manual verification)
    NONE → Pending → Completed                            (Automatic verification)

Completed and Rejected are terminal. Every transition that moves points is a
single DynamoDB transaction guarded by a condition on the current status, so
the status change and the balance change land together or not at all, and a
repeated or concurrent call can never credit twice.
"""
import time
import uuid
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key

from .dynamo import Store, TransactionCanceled, PROFILES, SUBMISSIONS, TASKS, USER_TASKS
from .errors import (
    AlreadyReviewed,
    AlreadyStarted,
    Forbidden,
    InvalidTransition,
    NotFound,
    TaskUnavailable,
    Unauthenticated,
    ValidationError,
)
from .events import ChangeFeed
from .logging import logger
from .models import ChangeType, ReviewDecision, Topic, UserTaskStatus, VerificationType
from .profiles import ProfileService, points_credit

STATUS = {'#status': 'status'}


def is_startable(task: Dict[str, Any], now: int) -> bool:
    """A task can be started only while it is active and not yet expired."""
    return bool(task.get('active')) and int(task.get('expiresAt') or 0) > now


class TaskLifecycle:
    """Start, submit, review and complete tasks on behalf of users."""

    def __init__(self, store: Store, feed: ChangeFeed, profiles: ProfileService = None, clock=time.time):
        self.store = store
        self.feed = feed
        self.profiles = profiles or ProfileService(store, feed, clock=clock)
        self.clock = clock

    # ---- lookups ----

    def get_task(self, task_id: str) -> Dict[str, Any]:
        task = self.store.get_item(TASKS, {'taskId': task_id}) if task_id else None
        if not task:
            raise NotFound('Task not found')
        return task

    def find_user_task(self, user_id: str, task_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get_item(USER_TASKS, {'userId': user_id, 'taskId': task_id})

    def get_user_task_by_id(self, user_task_id: str) -> Dict[str, Any]:
        items = self.store.query(
            USER_TASKS,
            Key('userTaskId').eq(user_task_id),
            index_name='UserTaskIdIndex'
        ) if user_task_id else []
        if not items:
            raise NotFound('User task not found')
        # Re-read through the table for a consistent view of the status
        item = items[0]
        return self.find_user_task(item['userId'], item['taskId']) or item

    # ---- transitions ----

    def start(self, user_id: str, task_id: str) -> Dict[str, Any]:
        """
        Create the user's task in Pending.

        Raises:
            Unauthenticated: no caller identity
            NotFound: unknown task
            TaskUnavailable: task inactive or expired
            AlreadyStarted: the user already has this task, in any status
        """
        if not user_id:
            raise Unauthenticated()

        task = self.get_task(task_id)
        now = int(self.clock())
        if not is_startable(task, now):
            raise TaskUnavailable()

        user_task = {
            'userId': user_id,
            'taskId': task_id,
            'userTaskId': str(uuid.uuid4()),
            'status': UserTaskStatus.PENDING,
            'createdAt': now,
            'updatedAt': now,
        }

        try:
            self.store.transact([
                # The task must still be startable when the write commits
                self.store.condition_check(
                    TASKS,
                    {'taskId': task_id},
                    '#active = :true AND #expiresAt > :now',
                    names={'#active': 'active', '#expiresAt': 'expiresAt'},
                    values={':true': True, ':now': now}
                ),
                self.store.put(
                    USER_TASKS,
                    user_task,
                    condition='attribute_not_exists(#userId)',
                    names={'#userId': 'userId'}
                ),
            ])
        except TransactionCanceled:
            current = self.store.get_item(TASKS, {'taskId': task_id})
            if not current or not is_startable(current, now):
                raise TaskUnavailable()
            raise AlreadyStarted()

        logger.info(f"User {user_id} started task {task_id} (userTask {user_task['userTaskId']})")
        self.feed.publish(Topic.USER_TASKS, ChangeType.INSERT,
                          {'userId': user_id, 'taskId': task_id}, user_id=user_id)
        return {**user_task, 'task': task}

    def submit(
        self,
        user_id: str,
        user_task_id: str,
        screenshot_path: str = None,
        notes: str = None
    ) -> Dict[str, Any]:
        """
        Attach evidence to a Manual task: creates the submission and moves the
        user task Pending → Submitted in one transaction.

        Raises:
            Unauthenticated, Forbidden, NotFound, ValidationError, InvalidTransition
        """
        if not user_id:
            raise Unauthenticated()

        user_task = self.get_user_task_by_id(user_task_id)
        if user_task['userId'] != user_id:
            raise Forbidden('Not authorized for this task')

        task = self.get_task(user_task['taskId'])
        if task.get('verificationType') == VerificationType.AUTOMATIC:
            raise InvalidTransition('Automatic tasks are completed without a submission')

        if user_task['status'] != UserTaskStatus.PENDING:
            raise InvalidTransition(f"Cannot submit a task that is {user_task['status']}")

        screenshot_path = (screenshot_path or '').strip() or None
        notes = (notes or '').strip() or None
        if not screenshot_path and not notes:
            raise ValidationError('A screenshot or submission notes are required')
        if task.get('requiredMedia') and not screenshot_path:
            raise ValidationError('This task requires a screenshot')

        now = int(self.clock())
        submission = {
            'submissionId': str(uuid.uuid4()),
            'userTaskId': user_task['userTaskId'],
            'userId': user_id,
            'taskId': user_task['taskId'],
            'screenshotPath': screenshot_path,
            'submissionNotes': notes,
            'submittedAt': now,
        }
        key = {'userId': user_id, 'taskId': user_task['taskId']}

        try:
            self.store.transact([
                self.store.put(
                    SUBMISSIONS,
                    submission,
                    condition='attribute_not_exists(#submissionId)',
                    names={'#submissionId': 'submissionId'}
                ),
                self.store.update(
                    USER_TASKS,
                    key,
                    'SET #status = :submitted, #submissionId = :sid, #updatedAt = :ts',
                    condition='#status = :pending',
                    names={**STATUS, '#submissionId': 'submissionId', '#updatedAt': 'updatedAt'},
                    values={
                        ':submitted': UserTaskStatus.SUBMITTED,
                        ':pending': UserTaskStatus.PENDING,
                        ':sid': submission['submissionId'],
                        ':ts': now,
                    }
                ),
            ])
        except TransactionCanceled:
            raise InvalidTransition('Task was already submitted')

        logger.info(f"Submission {submission['submissionId']} created for userTask {user_task['userTaskId']}")
        self.feed.publish(Topic.TASK_SUBMISSIONS, ChangeType.INSERT,
                          {'submissionId': submission['submissionId']}, user_id=user_id)
        self.feed.publish(Topic.USER_TASKS, ChangeType.UPDATE, key, user_id=user_id)
        return {k: v for k, v in submission.items() if v is not None}

    def review(
        self,
        submission_id: str,
        decision: str,
        reviewer_id: str,
        admin_notes: str = None
    ) -> Dict[str, Any]:
        """
        Admin decision on a submission: Submitted → Completed (approve, awards
        task.points) or Submitted → Rejected.

        Raises:
            Unauthenticated, Forbidden, ValidationError, NotFound, AlreadyReviewed
        """
        if not reviewer_id:
            raise Unauthenticated()
        self.profiles.require_admin(reviewer_id)

        decision = (decision or '').strip().lower()
        if decision not in ReviewDecision.ALL:
            raise ValidationError("Decision must be 'approve' or 'reject'")

        submission = self.store.get_item(SUBMISSIONS, {'submissionId': submission_id}) if submission_id else None
        if not submission:
            raise NotFound('Submission not found')
        if submission.get('reviewedAt'):
            raise AlreadyReviewed()

        user_id = submission['userId']
        key = {'userId': user_id, 'taskId': submission['taskId']}
        if not self.find_user_task(user_id, submission['taskId']):
            raise NotFound('User task not found')
        task = self.get_task(submission['taskId'])

        approve = decision == ReviewDecision.APPROVE
        new_status = UserTaskStatus.COMPLETED if approve else UserTaskStatus.REJECTED
        points = int(task.get('points', 0)) if approve else 0
        now = int(self.clock())

        review_set = 'SET #reviewedAt = :ts, #reviewedBy = :reviewer, #decision = :decision'
        review_names = {'#reviewedAt': 'reviewedAt', '#reviewedBy': 'reviewedBy', '#decision': 'decision'}
        review_values = {':ts': now, ':reviewer': reviewer_id, ':decision': decision}
        if admin_notes:
            review_set += ', #adminNotes = :notes'
            review_names['#adminNotes'] = 'adminNotes'
            review_values[':notes'] = admin_notes

        task_set = 'SET #status = :new_status, #updatedAt = :ts'
        task_names = {**STATUS, '#updatedAt': 'updatedAt', '#submissionId': 'submissionId'}
        task_values = {
            ':new_status': new_status,
            ':submitted': UserTaskStatus.SUBMITTED,
            ':sid': submission_id,
            ':ts': now,
        }
        if approve:
            task_set += ', #pointsEarned = :points, #completedAt = :ts'
            task_names.update({'#pointsEarned': 'pointsEarned', '#completedAt': 'completedAt'})
            task_values[':points'] = points

        items = [
            self.store.update(
                SUBMISSIONS,
                {'submissionId': submission_id},
                review_set,
                condition='attribute_not_exists(#reviewedAt)',
                names=review_names,
                values=review_values
            ),
            self.store.update(
                USER_TASKS,
                key,
                task_set,
                condition='#status = :submitted AND #submissionId = :sid',
                names=task_names,
                values=task_values
            ),
        ]
        if approve:
            items.append(points_credit(self.store, user_id, points, now))

        try:
            self.store.transact(items)
        except TransactionCanceled:
            current = self.store.get_item(SUBMISSIONS, {'submissionId': submission_id})
            current_task = self.find_user_task(user_id, submission['taskId'])
            if (current and current.get('reviewedAt')) or \
                    (current_task and current_task.get('status') != UserTaskStatus.SUBMITTED):
                raise AlreadyReviewed()
            raise NotFound('Profile not found')

        verb = 'approved' if approve else 'rejected'
        logger.info(f"Submission {submission_id} {verb} by {reviewer_id}; {points} points to {user_id}")
        self.feed.publish(Topic.TASK_SUBMISSIONS, ChangeType.UPDATE, {'submissionId': submission_id}, user_id=user_id)
        self.feed.publish(Topic.USER_TASKS, ChangeType.UPDATE, key, user_id=user_id)
        if approve:
            self.feed.publish(Topic.PROFILES, ChangeType.UPDATE, {'userId': user_id}, user_id=user_id)

        return {
            'success': True,
            'message': f'Task {verb} successfully',
            'status': new_status,
            'points_earned': points,
        }

    def complete_task(self, user_id: str, task_id: str) -> Dict[str, Any]:
        """
        Automatic completion: Pending → Completed and credit task.points to the
        user's balance, atomically and at most once.

        Returns:
            {success, message, points_earned}
        """
        if not user_id:
            raise Unauthenticated()

        key = {'userId': user_id, 'taskId': task_id}
        user_task = self.find_user_task(user_id, task_id) if task_id else None
        if not user_task:
            raise NotFound('User task not found')

        task = self.get_task(task_id)
        if task.get('verificationType') != VerificationType.AUTOMATIC:
            raise InvalidTransition('Manual tasks are completed through admin review')
        if user_task['status'] != UserTaskStatus.PENDING:
            raise InvalidTransition(f"Task is already {user_task['status']}")

        points = int(task.get('points', 0))
        now = int(self.clock())

        try:
            self.store.transact([
                self.store.update(
                    USER_TASKS,
                    key,
                    'SET #status = :completed, #pointsEarned = :points, #completedAt = :ts, #updatedAt = :ts',
                    condition='#status = :pending',
                    names={
                        **STATUS,
                        '#pointsEarned': 'pointsEarned',
                        '#completedAt': 'completedAt',
                        '#updatedAt': 'updatedAt',
                    },
                    values={
                        ':completed': UserTaskStatus.COMPLETED,
                        ':pending': UserTaskStatus.PENDING,
                        ':points': points,
                        ':ts': now,
                    }
                ),
                points_credit(self.store, user_id, points, now),
            ])
        except TransactionCanceled:
            current = self.find_user_task(user_id, task_id)
            if current and current.get('status') != UserTaskStatus.PENDING:
                raise InvalidTransition(f"Task is already {current['status']}")
            raise NotFound('Profile not found')

        logger.info(f"User {user_id} completed task {task_id}: +{points} points")
        self.feed.publish(Topic.USER_TASKS, ChangeType.UPDATE, key, user_id=user_id)
        self.feed.publish(Topic.PROFILES, ChangeType.UPDATE, {'userId': user_id}, user_id=user_id)

        return {
            'success': True,
            'message': 'Task completed successfully!',
            'points_earned': points,
        }

    # ---- reads ----

    def list_user_tasks(self, user_id: str) -> List[Dict[str, Any]]:
        """The user's tasks (with task and submission attached), newest first."""
        if not user_id:
            raise Unauthenticated()

        user_tasks = self.store.query(USER_TASKS, Key('userId').eq(user_id))
        tasks = {}
        for user_task in user_tasks:
            task_id = user_task['taskId']
            if task_id not in tasks:
                tasks[task_id] = self.store.get_item(TASKS, {'taskId': task_id})
            user_task['task'] = tasks[task_id]
            if user_task.get('submissionId'):
                user_task['submission'] = self.store.get_item(
                    SUBMISSIONS, {'submissionId': user_task['submissionId']}
                )

        user_tasks.sort(key=lambda ut: ut.get('createdAt', 0), reverse=True)
        return user_tasks

    def list_pending_submissions(self, admin_id: str) -> List[Dict[str, Any]]:
        """Unreviewed submissions, oldest first, with user task, task and submitter."""
        if not admin_id:
            raise Unauthenticated()
        self.profiles.require_admin(admin_id)

        submissions = self.store.scan(SUBMISSIONS, Attr('reviewedAt').not_exists())
        for submission in submissions:
            user_task = self.find_user_task(submission['userId'], submission['taskId'])
            if user_task:
                user_task['task'] = self.store.get_item(TASKS, {'taskId': submission['taskId']})
                profile = self.store.get_item(PROFILES, {'userId': submission['userId']}) or {}
                user_task['user'] = {
                    'userId': submission['userId'],
                    'username': profile.get('username'),
                    'fullName': profile.get('fullName'),
                }
            submission['userTask'] = user_task

        submissions.sort(key=lambda s: s.get('submittedAt', 0))
        return submissions

