"""
Tests for task catalog management and media URLs.
"""
import pytest

from shared.errors import NotFound, ValidationError
from shared.catalog import parse_points


def task_data(**overrides):
    data = {
        'title': 'Follow the artist',
        'description': 'Follow SoundTrump on Spotify',
        'points': 20,
        'difficulty': 'Easy',
        'verificationType': 'Automatic',
    }
    data.update(overrides)
    return data


class TestParsePoints:

    def test_accepts_positive_integers(self):
        assert parse_points(10) == 10
        assert parse_points('15') == 15
        assert parse_points(3.0) == 3

    @pytest.mark.parametrize('value', [0, -5, 2.5, True, 'ten', None])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_points(value)


class TestCreateTask:

    def test_expiry_from_duration(self, catalog, clock):
        task = catalog.create_task(task_data(), duration_hours=2)

        assert task['expiresAt'] == clock() + 7200
        assert task['active'] is True
        assert task['requiredMedia'] is False

    def test_default_duration(self, catalog, clock):
        task = catalog.create_task(task_data())

        assert task['expiresAt'] == clock() + 24 * 3600

    def test_manual_tasks_require_media_by_default(self, catalog):
        assert catalog.create_task(task_data(verificationType='Manual'))['requiredMedia'] is True
        assert catalog.create_task(task_data(verificationType='Manual', requiredMedia=False))['requiredMedia'] is False

    @pytest.mark.parametrize('field', ['title', 'description', 'points', 'difficulty', 'verificationType'])
    def test_required_fields(self, catalog, field):
        data = task_data()
        del data[field]

        with pytest.raises(ValidationError):
            catalog.create_task(data)

    def test_rejects_unknown_enum_values(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_task(task_data(difficulty='Extreme'))
        with pytest.raises(ValidationError):
            catalog.create_task(task_data(verificationType='Magic'))

    def test_rejects_unknown_category(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_task(task_data(categoryId='nope'))

    def test_rejects_non_positive_duration(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_task(task_data(), duration_hours=0)


class TestListTasks:

    def test_lists_active_unexpired_newest_first(self, catalog, clock, make_task):
        older = make_task()
        clock.advance(5)
        newer = make_task(imagePath='covers/new.png')
        make_task(active=False)
        make_task(expires_in=-1)

        tasks = catalog.list_tasks()

        assert [t['taskId'] for t in tasks] == [newer['taskId'], older['taskId']]
        assert tasks[0]['imageUrl'] == 'https://task-images.s3.us-east-1.amazonaws.com/covers/new.png'
        assert tasks[1]['imageUrl'] is None

    def test_include_inactive(self, catalog, make_task):
        make_task(active=False)

        assert len(catalog.list_tasks(include_inactive=True)) == 1

    def test_category_attached(self, catalog, make_task):
        category = catalog.create_category('Streaming', 'Listen to tracks')
        make_task(categoryId=category['categoryId'])

        assert catalog.list_tasks()[0]['category']['name'] == 'Streaming'

    def test_categories_sorted_by_name(self, catalog):
        catalog.create_category('Social')
        catalog.create_category('playlists')

        assert [c['name'] for c in catalog.list_categories()] == ['playlists', 'Social']


class TestUpdateAndDelete:

    def test_update_fields(self, catalog, make_task):
        task = make_task()

        updated = catalog.update_task(task['taskId'], {'points': '75', 'active': False, 'ignored': 'x'})

        assert updated['points'] == 75
        assert updated['active'] is False
        assert 'ignored' not in updated

    def test_update_unknown_task(self, catalog):
        with pytest.raises(NotFound):
            catalog.update_task('missing', {'title': 'New'})

    def test_update_requires_fields(self, catalog, make_task):
        with pytest.raises(ValidationError):
            catalog.update_task(make_task()['taskId'], {'nothing': 1})

    def test_delete_cascades(self, catalog, lifecycle, make_profile, make_task):
        user = make_profile()
        task = make_task()
        lifecycle.start(user, task['taskId'])

        result = catalog.delete_task(task['taskId'])

        assert result == {'success': True, 'taskId': task['taskId'], 'filesDeleted': 0}
        assert lifecycle.find_user_task(user, task['taskId']) is None
        with pytest.raises(NotFound):
            catalog.delete_task(task['taskId'])


class TestMediaUrls:

    def test_public_url_is_derived(self, storage):
        assert storage.public_url('task-screenshots', '/u1/shot.png') == \
            'https://task-screenshots.s3.us-east-1.amazonaws.com/u1/shot.png'

    def test_absolute_urls_pass_through(self, storage):
        assert storage.public_url('task-images', 'https://cdn.example.com/a.png') == 'https://cdn.example.com/a.png'

    def test_empty_path(self, storage):
        assert storage.public_url('task-images', '') is None

    def test_delete_objects_counts(self, storage, s3):
        s3.put_object(Bucket='task-images', Key='a.png', Body=b'1')
        s3.put_object(Bucket='task-images', Key='b.png', Body=b'2')

        assert storage.delete_objects('task-images', ['/a.png', 'b.png', '']) == 2
        assert storage.delete_objects('task-images', []) == 0
