"""
Data models and status constants for the SoundTrump rewards platform.
Based on the user task lifecycle: Pending → Submitted → Completed/Rejected
(Automatic tasks go straight from Pending to Completed).
"""


class UserTaskStatus:
    """User task lifecycle statuses."""
    PENDING = 'Pending'
    SUBMITTED = 'Submitted'
    COMPLETED = 'Completed'
    REJECTED = 'Rejected'


class VerificationType:
    """How a task completion is verified."""
    AUTOMATIC = 'Automatic'
    MANUAL = 'Manual'

    ALL = (AUTOMATIC, MANUAL)


class Difficulty:
    """Task difficulty labels."""
    EASY = 'Easy'
    MEDIUM = 'Medium'
    HARD = 'Hard'

    ALL = (EASY, MEDIUM, HARD)


class ReviewDecision:
    """Admin review decisions for manual submissions."""
    APPROVE = 'approve'
    REJECT = 'reject'

    ALL = (APPROVE, REJECT)


class Role:
    """Profile roles."""
    USER = 'user'
    ADMIN = 'admin'

    ALL = (USER, ADMIN)


class Tier:
    """Subscription tiers."""
    FREE = 'Free'
    PREMIUM = 'Premium'

    ALL = (FREE, PREMIUM)


class ProfileStatus:
    """Profile status (influencer flag)."""
    NORMAL = 'Normal'
    INFLUENCER = 'Influencer'

    ALL = (NORMAL, INFLUENCER)


class UserRewardStatus:
    """Reward redemption statuses."""
    PENDING = 'Pending'
    FULFILLED = 'Fulfilled'
    CANCELLED = 'Cancelled'


class ServiceName:
    """Third-party services a profile can connect."""
    SPOTIFY = 'spotify'


class Topic:
    """Change feed topics, one per entity type."""
    TASKS = 'tasks'
    USER_TASKS = 'user_tasks'
    TASK_SUBMISSIONS = 'task_submissions'
    REFERRED_USERS = 'referred_users'
    PROFILES = 'profiles'
    USER_REWARDS = 'user_rewards'


class ChangeType:
    """Change feed event types."""
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
