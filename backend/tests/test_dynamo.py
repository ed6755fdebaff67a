"""
Tests for the DynamoDB store: transactions against moto.
"""
import pytest

from shared.dynamo import PROFILES, TASKS, Store, TransactionCanceled


class TestTransact:

    def test_transaction_applies_every_entry(self, store, make_profile):
        user = make_profile(points=5)

        store.transact([
            store.update(PROFILES, {'userId': user}, 'ADD #points :p',
                         condition='attribute_exists(#userId)',
                         names={'#points': 'points', '#userId': 'userId'}, values={':p': 7}),
            store.put(TASKS, {'taskId': 't-1', 'title': 'Share the playlist', 'active': True, 'points': 20}),
        ])

        assert store.get_item(PROFILES, {'userId': user})['points'] == 12
        assert store.get_item(TASKS, {'taskId': 't-1'}) == {
            'taskId': 't-1', 'title': 'Share the playlist', 'active': True, 'points': 20,
        }

    def test_failed_condition_writes_nothing(self, store, make_profile):
        user = make_profile(points=5)

        with pytest.raises(TransactionCanceled):
            store.transact([
                store.update(PROFILES, {'userId': user}, 'ADD #points :p',
                             names={'#points': 'points'}, values={':p': 7}),
                store.condition_check(TASKS, {'taskId': 'missing'}, 'attribute_exists(#taskId)',
                                      names={'#taskId': 'taskId'}),
            ])

        assert store.get_item(PROFILES, {'userId': user})['points'] == 5

    def test_default_client_is_low_level(self, aws):
        store = Store()

        assert store.client is not store.resource.meta.client
        assert store.client.meta.service_model.service_name == 'dynamodb'
