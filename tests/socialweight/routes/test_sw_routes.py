"""Tests for /sw/* endpoints."""
from datetime import datetime, timedelta, timezone

import pytest

from socialweight.services.store import ErrorKind


@pytest.fixture
def member(store):
    """A registered user with two posts on a network too small to decay."""
    store.add_profile('user-1', 'alice')
    store.add_post('user-1', 'hello')
    store.add_post('user-1', 'again')
    store.user_count = 0
    return store


class TestCalculate:
    """GET /sw/calculate"""

    def test_requires_token(self, client):
        resp = client.get('/sw/calculate')
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'UNAUTHORIZED'

    def test_invalid_token(self, client):
        resp = client.get('/sw/calculate', headers={'Authorization': 'Bearer nope'})
        assert resp.status_code == 401

    def test_scores_caller(self, client, member, auth_header):
        resp = client.get('/sw/calculate', headers=auth_header('user-1'))
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['totalSW'] == 90
        assert data['baseSW'] == 90
        assert data['cached'] is False
        assert data['breakdown']['posts']['count'] == 2
        assert data['level']['name'] == 'Beginner'

    def test_second_call_is_cached(self, client, member, auth_header):
        client.get('/sw/calculate', headers=auth_header('user-1'))
        data = client.get('/sw/calculate', headers=auth_header('user-1')).get_json()
        assert data['cached'] is True
        assert data['cacheAge'] == 0
        assert data['totalSW'] == 90

    def test_other_user_by_query(self, client, member, auth_header):
        member.add_profile('user-2', 'bob')
        resp = client.get('/sw/calculate?user_id=user-2', headers=auth_header('user-1'))
        assert resp.status_code == 200
        assert resp.get_json()['totalSW'] == 50

    def test_missing_weights_is_config_error(self, client, store, auth_header):
        store.weights = None
        resp = client.get('/sw/calculate', headers=auth_header('user-1'))
        assert resp.status_code == 500
        assert resp.get_json()['code'] == 'CONFIG_ERROR'

    def test_denied_category_skipped_for_member(self, client, member, auth_header):
        member.failures['follows'] = ErrorKind.ACCESS_DENIED
        resp = client.get('/sw/calculate', headers=auth_header('user-1'))
        assert resp.status_code == 200
        assert resp.get_json()['breakdown']['followers']['skipped'] is True

    def test_denial_surfaced_to_admin(self, client, member, auth_header):
        member.failures['follows'] = ErrorKind.ACCESS_DENIED
        resp = client.get('/sw/calculate?user_id=user-1', headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 403
        assert resp.get_json() == {'error': 'Permission denied', 'code': 'ACCESS_DENIED'}

    def test_profile_failure_is_server_error(self, client, member, auth_header):
        member.failures['get_profile'] = ErrorKind.TRANSIENT
        resp = client.get('/sw/calculate', headers=auth_header('user-1'))
        assert resp.status_code == 500
        assert resp.get_json()['code'] == 'TRANSIENT'


class TestRecalculate:
    """POST /sw/recalculate"""

    def test_recalculates_self(self, client, member, auth_header):
        client.get('/sw/calculate', headers=auth_header('user-1'))
        member.add_post('user-1', 'third')
        resp = client.post('/sw/recalculate', json={}, headers=auth_header('user-1'))
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['success'] is True
        assert data['totalSW'] == 110
        assert data['message'] == 'SW recalculated successfully'
        assert member.scores['user-1']['total'] == 110

    def test_member_cannot_recalculate_others(self, client, member, auth_header):
        resp = client.post('/sw/recalculate', json={'user_id': 'user-2'}, headers=auth_header('user-1'))
        assert resp.status_code == 403
        assert 'user-2' not in member.scores

    def test_admin_recalculates_others(self, client, member, auth_header):
        resp = client.post('/sw/recalculate', json={'user_id': 'user-1'},
                           headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 200
        assert resp.get_json()['totalSW'] == 90


class TestWeights:
    """GET/PUT /sw/weights"""

    def test_get(self, client, store, auth_header):
        resp = client.get('/sw/weights', headers=auth_header())
        data = resp.get_json()
        assert data['weights']['post_points'] == 20
        assert 'sw_levels' not in data['weights']
        assert data['sw_levels'][0]['name'] == 'Beginner'
        assert data['sw_levels'][0]['minSW'] == 0
        assert data['sw_levels'][-1]['name'] == 'Angel'

    def test_get_unconfigured(self, client, store, auth_header):
        store.weights = None
        assert client.get('/sw/weights', headers=auth_header()).get_json() == {
            'weights': None, 'sw_levels': None,
        }

    def test_update_requires_admin(self, client, store, auth_header):
        resp = client.put('/sw/weights', json={'post_points': 30}, headers=auth_header())
        assert resp.status_code == 403
        assert store.weights['post_points'] == 20

    def test_partial_update(self, client, store, auth_header):
        resp = client.put('/sw/weights', json={'post_points': 30, 'ignored': 1},
                          headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 200
        assert resp.get_json()['weights']['post_points'] == 30
        assert store.weights['post_points'] == 30
        assert store.weights['updated_by'] == 'admin-1'
        assert 'ignored' not in store.weights

    def test_update_levels(self, client, store, auth_header):
        levels = [{'name': 'Low', 'minSW': 0}, {'name': 'High', 'minSW': 500}]
        resp = client.put('/sw/weights', json={'sw_levels': levels},
                          headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 200
        assert [t['name'] for t in resp.get_json()['sw_levels']] == ['Low', 'High']

    @pytest.mark.parametrize('body', [
        {'post_points': -1},
        {'post_points': 'ten'},
        {'post_points': True},
        {'min_inflation_rate': 1.5},
        {'sw_levels': []},
        {},
    ])
    def test_rejects_invalid(self, client, store, auth_header, body):
        resp = client.put('/sw/weights', json=body, headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 400
        assert store.weights['post_points'] == 20

    def test_update_unconfigured(self, client, store, auth_header):
        store.weights = None
        resp = client.put('/sw/weights', json={'post_points': 30},
                          headers=auth_header('admin-1', role='admin'))
        assert resp.status_code == 404


class TestGrowth:
    """GET /sw/growth"""

    def test_windows(self, client, store, auth_header):
        now = datetime.now(timezone.utc)
        store.add_ledger('user-1', 10, created_at=now - timedelta(hours=2))
        store.add_ledger('user-1', 25, created_at=now - timedelta(days=3))
        store.add_ledger('user-1', 100, created_at=now - timedelta(days=30))
        store.add_ledger('user-2', 999, created_at=now - timedelta(hours=1))
        data = client.get('/sw/growth', headers=auth_header('user-1')).get_json()
        assert data == {'growth24h': 10, 'growth7d': 35}
