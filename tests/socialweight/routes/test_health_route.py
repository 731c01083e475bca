"""Tests for GET /health."""


class TestHealth:
    def test_returns_200(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}

    def test_no_token_needed(self, client):
        assert client.get('/health').status_code == 200
