"""
Tests for the reward catalog and redemption.
"""
import pytest

from shared.dynamo import PROFILES, REWARDS, USER_REWARDS
from shared.errors import InsufficientPoints, NotFound, ValidationError
from shared.rewards import RewardService


@pytest.fixture
def rewards(store, feed, clock):
    return RewardService(store, feed, clock=clock)


def points(store, user_id):
    return store.get_item(PROFILES, {'userId': user_id})['points']


class TestRewardCatalog:

    def test_list_active_by_cost(self, rewards):
        pricey = rewards.create_reward({'name': 'Concert ticket', 'pointsCost': 500})
        cheap = rewards.create_reward({'name': 'Sticker pack', 'pointsCost': 20})
        hidden = rewards.create_reward({'name': 'Old merch', 'pointsCost': 5})
        rewards.update_reward(hidden['rewardId'], {'active': False})

        listed = rewards.list_rewards()

        assert [r['rewardId'] for r in listed] == [cheap['rewardId'], pricey['rewardId']]

    def test_create_validates(self, rewards):
        with pytest.raises(ValidationError):
            rewards.create_reward({'name': 'Free', 'pointsCost': 0})
        with pytest.raises(ValidationError):
            rewards.create_reward({'pointsCost': 10})
        with pytest.raises(ValidationError):
            rewards.create_reward({'name': 'Odd', 'pointsCost': 10, 'quantity': -1})

    def test_update_can_clear_quantity(self, rewards, store):
        reward = rewards.create_reward({'name': 'Poster', 'pointsCost': 50, 'quantity': 3})

        rewards.update_reward(reward['rewardId'], {'quantity': None})

        assert 'quantity' not in store.get_item(REWARDS, {'rewardId': reward['rewardId']})

    def test_delete(self, rewards):
        reward = rewards.create_reward({'name': 'Poster', 'pointsCost': 50})

        rewards.delete_reward(reward['rewardId'])

        with pytest.raises(NotFound):
            rewards.get_reward(reward['rewardId'])


class TestRedeemReward:

    def test_redeem_debits_points_and_stock(self, rewards, store, make_profile):
        user = make_profile(points=120)
        reward = rewards.create_reward({'name': 'T-shirt', 'pointsCost': 100, 'quantity': 2})

        result = rewards.redeem_reward(user, reward['rewardId'])

        assert result['success'] is True
        assert result['remaining_points'] == 20
        assert points(store, user) == 20
        assert store.get_item(REWARDS, {'rewardId': reward['rewardId']})['quantity'] == 1
        redemption = store.get_item(USER_REWARDS, {'userRewardId': result['userReward']['userRewardId']})
        assert redemption['pointsSpent'] == 100
        assert redemption['status'] == 'Pending'

    def test_insufficient_points_leaves_balance(self, rewards, store, make_profile):
        user = make_profile(points=30)
        reward = rewards.create_reward({'name': 'T-shirt', 'pointsCost': 100})

        with pytest.raises(InsufficientPoints):
            rewards.redeem_reward(user, reward['rewardId'])

        assert points(store, user) == 30
        assert store.scan(USER_REWARDS) == []

    def test_balance_spent_concurrently(self, rewards, store, make_profile):
        """The balance condition holds even when the pre-check saw enough points."""
        user = make_profile(points=100)
        reward = rewards.create_reward({'name': 'Poster', 'pointsCost': 80})
        real_get = store.get_item

        def rich_profile(table, key):
            item = real_get(table, key)
            return {**item, 'points': 1000} if table == PROFILES else item

        store.get_item = rich_profile
        rewards.redeem_reward(user, reward['rewardId'])
        with pytest.raises(InsufficientPoints):
            rewards.redeem_reward(user, reward['rewardId'])
        store.get_item = real_get

        assert points(store, user) == 20

    def test_out_of_stock(self, rewards, make_profile):
        first = make_profile(points=100)
        second = make_profile(points=100)
        reward = rewards.create_reward({'name': 'Signed vinyl', 'pointsCost': 50, 'quantity': 1})
        rewards.redeem_reward(first, reward['rewardId'])

        with pytest.raises(ValidationError):
            rewards.redeem_reward(second, reward['rewardId'])

    def test_inactive_or_expired(self, rewards, clock, make_profile):
        user = make_profile(points=100)
        inactive = rewards.create_reward({'name': 'Gone', 'pointsCost': 10})
        rewards.update_reward(inactive['rewardId'], {'active': False})
        expired = rewards.create_reward({'name': 'Late', 'pointsCost': 10, 'expiresAt': clock() - 1})

        for reward in (inactive, expired):
            with pytest.raises(ValidationError):
                rewards.redeem_reward(user, reward['rewardId'])

    def test_user_rewards_listed_newest_first(self, rewards, clock, make_profile):
        user = make_profile(points=100)
        a = rewards.create_reward({'name': 'A', 'pointsCost': 10})
        b = rewards.create_reward({'name': 'B', 'pointsCost': 10})
        rewards.redeem_reward(user, a['rewardId'])
        clock.advance(5)
        rewards.redeem_reward(user, b['rewardId'])

        listed = rewards.list_user_rewards(user)

        assert [item['reward']['name'] for item in listed] == ['B', 'A']
