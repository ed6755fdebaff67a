"""
Shared fixtures: in-process AWS (moto), the platform tables and buckets,
a controllable clock and factories for profiles and tasks.
"""
import os
import sys
import time
import uuid

import boto3
import pytest
from moto import mock_aws

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_SECURITY_TOKEN', 'testing')
os.environ.setdefault('AWS_SESSION_TOKEN', 'testing')
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ['AWS_REGION'] = 'us-east-1'

from shared import dynamo, events, s3_utils  # noqa: E402
from shared.catalog import TaskCatalog  # noqa: E402
from shared.config import config  # noqa: E402
from shared.dynamo import Store, create_tables, PROFILES, TASKS  # noqa: E402
from shared.events import ChangeFeed  # noqa: E402
from shared.lifecycle import TaskLifecycle  # noqa: E402
from shared.profiles import ProfileService  # noqa: E402
from shared.s3_utils import MediaStorage  # noqa: E402
from shared.sweeper import ExpirationSweeper  # noqa: E402

REGION = 'us-east-1'


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=None):
        self.now = int(time.time()) if now is None else now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def aws():
    with mock_aws():
        dynamo.reset_store()
        s3_utils.reset_storage()
        events.reset_feed()
        yield
        dynamo.reset_store()
        s3_utils.reset_storage()
        events.reset_feed()


@pytest.fixture
def store(aws):
    resource = boto3.resource('dynamodb', region_name=REGION)
    create_tables(resource)
    return Store(resource, client=boto3.client('dynamodb', region_name=REGION))


@pytest.fixture
def s3(aws):
    client = boto3.client('s3', region_name=REGION)
    client.create_bucket(Bucket=config.TASK_IMAGES_BUCKET)
    client.create_bucket(Bucket=config.TASK_SCREENSHOTS_BUCKET)
    return client


@pytest.fixture
def storage(s3):
    return MediaStorage(client=s3, region_name=REGION)


@pytest.fixture
def feed():
    return ChangeFeed(queue_url='')


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def profiles(store, feed, clock):
    return ProfileService(store, feed, clock=clock)


@pytest.fixture
def lifecycle(store, feed, profiles, clock):
    return TaskLifecycle(store, feed, profiles=profiles, clock=clock)


@pytest.fixture
def catalog(store, storage, feed, clock):
    return TaskCatalog(store, storage, feed, clock=clock)


@pytest.fixture
def sweeper(store, storage, feed, clock):
    return ExpirationSweeper(store, storage, feed, clock=clock)


@pytest.fixture
def make_profile(store, clock):
    def _make(user_id=None, points=0, role='user', username=None):
        user_id = user_id or f'user-{uuid.uuid4().hex[:8]}'
        store.put_item(PROFILES, {
            'userId': user_id,
            'username': username or user_id,
            'points': points,
            'tier': 'Free',
            'status': 'Normal',
            'role': role,
            'createdAt': clock(),
            'updatedAt': clock(),
        })
        return user_id
    return _make


@pytest.fixture
def admin(make_profile):
    return make_profile('admin-1', role='admin')


@pytest.fixture
def make_task(store, clock):
    def _make(points=50, verification='Automatic', active=True, expires_in=3600, **extra):
        task = {
            'taskId': str(uuid.uuid4()),
            'title': 'Stream the new single',
            'description': 'Listen to the track on Spotify',
            'points': points,
            'difficulty': 'Easy',
            'verificationType': verification,
            'active': active,
            'requiredMedia': verification == 'Manual',
            'expiresAt': clock() + expires_in,
            'createdAt': clock(),
            'updatedAt': clock(),
        }
        task.update(extra)
        store.put_item(TASKS, task)
        return task
    return _make
